# backend/app/dependencies.py
"""
Dependency injection module for FastAPI routers.

Two kinds of collaborators:
- Per application: the market data provider and the pair lock registry.
  They are created once in the lifespan (main.py) and stored on app.state,
  so tests can swap them by assigning app.state attributes.
- Per request: everything that wraps the request's SQLAlchemy session
  (ledger store, price store, preference store, asset directory) and the
  services assembled from them.

Usage in routers:
    from app.dependencies import get_ledger_service, get_user_id

    @router.post("/users/{user_id}/transactions")
    def submit(
        user_id: Annotated[str, Depends(get_user_id)],
        service: Annotated[LedgerService, Depends(get_ledger_service)],
    ):
        ...
"""

import logging
from typing import Annotated

from fastapi import Depends, Path, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.asset_directory import SqlAssetDirectory
from app.services.currency import CurrencyResolver
from app.services.ledger import LedgerService, PairLockRegistry, SqlLedgerClient
from app.services.market_data import MarketDataProvider, MarketDataRefreshService, SqlPriceSource
from app.services.user_preferences_service import SqlPreferenceStore
from app.services.valuation import HistoricalSeriesBuilder, SnapshotValuator
from app.utils.context import set_current_user_id

logger = logging.getLogger(__name__)

DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

def get_user_id(
        user_id: Annotated[str, Path(min_length=1, max_length=64, description="Opaque owner id")],
) -> str:
    """Ledger owner from the path; also tags this request's log records."""
    set_current_user_id(user_id)
    return user_id


# =============================================================================
# APPLICATION-WIDE COLLABORATORS
# =============================================================================

def get_market_data_provider(request: Request) -> MarketDataProvider:
    return request.app.state.market_data_provider


def get_pair_locks(request: Request) -> PairLockRegistry:
    return request.app.state.pair_locks


# =============================================================================
# PER-REQUEST STORES
# =============================================================================

def get_ledger_client(db: DbSession) -> SqlLedgerClient:
    return SqlLedgerClient(db)


def get_price_source(db: DbSession) -> SqlPriceSource:
    return SqlPriceSource(db)


def get_preference_store(db: DbSession) -> SqlPreferenceStore:
    return SqlPreferenceStore(db)


def get_asset_directory(db: DbSession) -> SqlAssetDirectory:
    return SqlAssetDirectory(db)


def get_currency_resolver(
        preferences: Annotated[SqlPreferenceStore, Depends(get_preference_store)],
        assets: Annotated[SqlAssetDirectory, Depends(get_asset_directory)],
        prices: Annotated[SqlPriceSource, Depends(get_price_source)],
) -> CurrencyResolver:
    return CurrencyResolver(preferences, assets, prices)


# =============================================================================
# SERVICES
# =============================================================================

def get_ledger_service(
        ledger: Annotated[SqlLedgerClient, Depends(get_ledger_client)],
        resolver: Annotated[CurrencyResolver, Depends(get_currency_resolver)],
        assets: Annotated[SqlAssetDirectory, Depends(get_asset_directory)],
        locks: Annotated[PairLockRegistry, Depends(get_pair_locks)],
) -> LedgerService:
    return LedgerService(ledger, resolver, assets, locks)


def get_snapshot_valuator(
        ledger: Annotated[SqlLedgerClient, Depends(get_ledger_client)],
        prices: Annotated[SqlPriceSource, Depends(get_price_source)],
        resolver: Annotated[CurrencyResolver, Depends(get_currency_resolver)],
) -> SnapshotValuator:
    return SnapshotValuator(ledger, prices, resolver)


def get_series_builder(
        ledger: Annotated[SqlLedgerClient, Depends(get_ledger_client)],
        prices: Annotated[SqlPriceSource, Depends(get_price_source)],
        resolver: Annotated[CurrencyResolver, Depends(get_currency_resolver)],
) -> HistoricalSeriesBuilder:
    return HistoricalSeriesBuilder(ledger, prices, resolver)


def get_refresh_service(
        db: DbSession,
        provider: Annotated[MarketDataProvider, Depends(get_market_data_provider)],
) -> MarketDataRefreshService:
    return MarketDataRefreshService(db, provider)
