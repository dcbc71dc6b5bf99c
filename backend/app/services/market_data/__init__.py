# backend/app/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for market data providers (base.py)
- Yahoo Finance implementation (yahoo.py)
- Stored daily bars / PriceSource (price_store.py)
- Incremental refresh orchestration (refresh_service.py)

Architecture:
    MarketDataProvider (ABC)
    └── YahooFinanceProvider (concrete)

    MarketDataRefreshService
    └── Provider -> SqlPriceSource.upsert_bars()
"""

from app.services.market_data.base import (
    MarketDataProvider,
    PriceBar,
    HistoricalPricesResult,
)
from app.services.market_data.price_store import SqlPriceSource
from app.services.market_data.refresh_service import (
    MarketDataRefreshService,
    RefreshResult,
    SymbolRefreshResult,
)
from app.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    "MarketDataProvider",
    "PriceBar",
    "HistoricalPricesResult",
    "SqlPriceSource",
    "YahooFinanceProvider",
    "MarketDataRefreshService",
    "RefreshResult",
    "SymbolRefreshResult",
]
