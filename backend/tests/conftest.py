# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Mock market data provider
- Stores and services wired to the test session
- FastAPI TestClient with the database and app.state overridden
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("APP_NAME", "Test App")

from datetime import date
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.services.asset_directory import SqlAssetDirectory
from app.services.currency import CurrencyResolver
from app.services.exceptions import TickerNotFoundError
from app.services.ledger import LedgerService, PairLockRegistry, SqlLedgerClient
from app.services.market_data.base import (
    HistoricalPricesResult,
    MarketDataProvider,
    PriceBar,
)
from app.services.market_data.price_store import SqlPriceSource
from app.services.user_preferences_service import SqlPreferenceStore
from app.services.valuation import HistoricalSeriesBuilder, SnapshotValuator


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Serves configured bars per symbol, filtered to the requested range, and
    records every call so tests can assert on the requested dates.
    """

    def __init__(self):
        self._bars: dict[str, list[PriceBar]] = {}
        self._errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, date, date]] = []

    @property
    def name(self) -> str:
        return "mock"

    def set_bars(self, symbol: str, bars: list[PriceBar]) -> None:
        """Configure the full history a symbol has on the provider."""
        self._bars[symbol.upper()] = sorted(bars, key=lambda b: b.date)

    def set_error(self, symbol: str, error: Exception) -> None:
        """Configure an error for a symbol."""
        self._errors[symbol.upper()] = error

    def reset(self) -> None:
        self._bars.clear()
        self._errors.clear()
        self.calls.clear()

    def requested_symbols(self) -> list[str]:
        return [symbol for symbol, _, _ in self.calls]

    def get_daily_bars(
            self,
            symbol: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        symbol = symbol.upper()
        self.calls.append((symbol, start_date, end_date))

        if symbol in self._errors:
            raise self._errors[symbol]
        if symbol not in self._bars:
            raise TickerNotFoundError(symbol=symbol, provider=self.name)

        return HistoricalPricesResult(
            symbol=symbol,
            bars=[b for b in self._bars[symbol] if start_date <= b.date <= end_date],
            from_date=start_date,
            to_date=end_date,
        )


@pytest.fixture
def mock_provider() -> MockMarketDataProvider:
    """Create a fresh mock provider for each test."""
    return MockMarketDataProvider()


# =============================================================================
# STORES AND SERVICES
# =============================================================================

@pytest.fixture
def ledger_client(db: Session) -> SqlLedgerClient:
    return SqlLedgerClient(db)


@pytest.fixture
def price_source(db: Session) -> SqlPriceSource:
    return SqlPriceSource(db)


@pytest.fixture
def preference_store(db: Session) -> SqlPreferenceStore:
    return SqlPreferenceStore(db)


@pytest.fixture
def asset_directory(db: Session) -> SqlAssetDirectory:
    return SqlAssetDirectory(db)


@pytest.fixture
def resolver(preference_store, asset_directory, price_source) -> CurrencyResolver:
    return CurrencyResolver(preference_store, asset_directory, price_source, default_currency="EUR")


@pytest.fixture
def ledger_service(ledger_client, resolver, asset_directory) -> LedgerService:
    return LedgerService(ledger_client, resolver, asset_directory, PairLockRegistry())


@pytest.fixture
def snapshot_valuator(ledger_client, price_source, resolver) -> SnapshotValuator:
    return SnapshotValuator(ledger_client, price_source, resolver)


@pytest.fixture
def series_builder(ledger_client, price_source, resolver) -> HistoricalSeriesBuilder:
    return HistoricalSeriesBuilder(ledger_client, price_source, resolver)


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture(scope="function")
def client(db: Session, mock_provider: MockMarketDataProvider):
    """TestClient with the database and app-wide collaborators overridden."""
    from fastapi.testclient import TestClient

    from app.database import get_db
    from app.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.market_data_provider = mock_provider
    app.state.pair_locks = PairLockRegistry()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
