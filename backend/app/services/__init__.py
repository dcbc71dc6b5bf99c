# backend/app/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive their stores as constructor arguments (not via Depends)
- Are easily testable with in-memory fakes of the protocols

Usage:
    from app.services import LedgerService, SnapshotValuator
    from app.services import CurrencyResolver, MarketDataRefreshService
    from app.services import (
        InvalidAllocationError,
        TransactionNotFoundError,
        RecomputeError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Business constants and limits
    ├── protocols.py                 # Store interfaces (Protocol classes)
    ├── currency.py                  # Display currency / FX resolution
    ├── asset_directory.py           # Ticker -> trading currency
    ├── user_preferences_service.py  # Alias and display currency
    ├── ledger/                      # Ledger write path and replay engines
    │   ├── types.py                 # RealTrade / RealizedGain and results
    │   ├── normalizer.py            # Row coercion and replay order
    │   ├── cost_basis.py            # WAC engine
    │   ├── fifo.py                  # FIFO lot aging
    │   ├── allocator.py             # Split across holders
    │   ├── locks.py                 # Per-pair locks
    │   ├── repository.py            # SQLAlchemy LedgerClient
    │   └── service.py               # Submit / delete / recompute / list
    ├── market_data/                 # Market data package
    │   ├── base.py                  # Abstract provider interface
    │   ├── yahoo.py                 # Yahoo Finance implementation
    │   ├── price_store.py           # Stored daily bars (PriceSource)
    │   └── refresh_service.py       # Incremental refresh orchestration
    └── valuation/                   # Read-only valuation
        ├── types.py                 # Snapshot / series data types
        ├── snapshot.py              # Point-in-time positions
        └── history.py               # Daily series
"""

from app.services.asset_directory import SqlAssetDirectory
from app.services.currency import CurrencyResolver, FxQuote
# Exceptions
from app.services.exceptions import (
    # Base exceptions
    ServiceError,
    # Validation
    ValidationError,
    InvalidAllocationError,
    InvalidDateRangeError,
    # Not found
    NotFoundError,
    TransactionNotFoundError,
    # Ledger
    LedgerError,
    LedgerQueryError,
    RecomputeError,
    # Market data exceptions
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    # FX rate exceptions
    FXRateError,
    FXRateNotFoundError,
)
from app.services.ledger import LedgerService, PairLockRegistry, SqlLedgerClient
from app.services.market_data import (
    MarketDataProvider,
    MarketDataRefreshService,
    PriceBar,
    RefreshResult,
    SqlPriceSource,
    YahooFinanceProvider,
)
from app.services.user_preferences_service import SqlPreferenceStore
from app.services.valuation import HistoricalSeriesBuilder, SnapshotValuator

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "LedgerService",
    "PairLockRegistry",
    "SqlLedgerClient",
    "CurrencyResolver",
    "FxQuote",
    "SqlAssetDirectory",
    "SqlPreferenceStore",
    # Market data
    "MarketDataProvider",
    "MarketDataRefreshService",
    "PriceBar",
    "RefreshResult",
    "SqlPriceSource",
    "YahooFinanceProvider",
    # Valuation
    "HistoricalSeriesBuilder",
    "SnapshotValuator",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    "ServiceError",
    "ValidationError",
    "InvalidAllocationError",
    "InvalidDateRangeError",
    "NotFoundError",
    "TransactionNotFoundError",
    "LedgerError",
    "LedgerQueryError",
    "RecomputeError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "FXRateError",
    "FXRateNotFoundError",
]
