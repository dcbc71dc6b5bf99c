# backend/app/services/market_data/refresh_service.py
"""
Incremental market data refresh.

Works out which symbols the ledger needs (every traded ticker plus the FX
pairs that convert each asset currency into the owners' display
currencies), asks the provider only for the days after the latest stored
bar of each symbol, and appends what comes back.

Refresh Flow:
    1. Collect symbols: ledger tickers + "{ASSET}{DISPLAY}=X" pairs
    2. latest_dates(): one MAX(date) per symbol
    3. Fetch [latest + 1, today] (or [MARKET_DATA_START_DATE, today])
    4. upsert_bars() with ON CONFLICT DO NOTHING, commit per symbol

A provider failure for one symbol is recorded in the result and the
remaining symbols are still refreshed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.services.asset_directory import SqlAssetDirectory
from app.services.currency import CurrencyResolver
from app.services.exceptions import MarketDataError
from app.services.ledger.repository import SqlLedgerClient
from app.services.market_data.base import MarketDataProvider
from app.services.market_data.price_store import SqlPriceSource
from app.services.user_preferences_service import SqlPreferenceStore

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT DATACLASSES
# =============================================================================

@dataclass
class SymbolRefreshResult:
    """Outcome for one symbol."""

    symbol: str
    from_date: date | None = None
    to_date: date | None = None
    bars_stored: int = 0
    up_to_date: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RefreshResult:
    """Outcome of a refresh run."""

    symbols: list[SymbolRefreshResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def bars_stored(self) -> int:
        return sum(s.bars_stored for s in self.symbols)

    @property
    def failed(self) -> list[SymbolRefreshResult]:
        return [s for s in self.symbols if not s.success]

    @property
    def status(self) -> str:
        if not self.failed:
            return "completed"
        if len(self.failed) == len(self.symbols):
            return "failed"
        return "partial"


# =============================================================================
# SERVICE
# =============================================================================

class MarketDataRefreshService:
    """
    Appends missing daily bars for every symbol the ledger depends on.

    Example:
        service = MarketDataRefreshService(db, provider)
        result = service.refresh()            # every user
        result = service.refresh("user-1")    # one user's tickers and FX pairs
    """

    def __init__(
            self,
            db: Session,
            provider: MarketDataProvider,
            start_date: date | None = None,
    ) -> None:
        self._db = db
        self._provider = provider
        self._start_date = start_date or settings.market_data_start_date
        self._ledger = SqlLedgerClient(db)
        self._prices = SqlPriceSource(db)
        self._assets = SqlAssetDirectory(db)
        self._resolver = CurrencyResolver(SqlPreferenceStore(db), self._assets, self._prices)

        logger.info(f"MarketDataRefreshService initialized (provider={provider.name})")

    def refresh(self, user_id: str | None = None, today: date | None = None) -> RefreshResult:
        """
        Refresh every symbol needed by one user, or by all users when None.

        Running it twice in a row stores nothing the second time.
        """
        today = today or date.today()
        result = RefreshResult()

        symbols = self.required_symbols(user_id)
        if not symbols:
            result.warnings.append("No tickers in the ledger; nothing to refresh")
            return result

        latest = self._prices.latest_dates(symbols)

        for symbol in symbols:
            result.symbols.append(self._refresh_symbol(symbol, latest.get(symbol), today))

        for failed in result.failed:
            result.warnings.append(f"{failed.symbol}: {failed.error}")

        logger.info(
            f"Market data refresh {result.status}: {len(symbols)} symbols, "
            f"{result.bars_stored} bars stored, {len(result.failed)} failed"
        )
        return result

    def required_symbols(self, user_id: str | None = None) -> list[str]:
        """Ledger tickers plus the FX pairs into each owner's display currency."""
        users = [user_id] if user_id is not None else self._ledger.distinct_users()

        symbols: set[str] = set()
        for uid in users:
            tickers = self._ledger.distinct_tickers(uid)
            if not tickers:
                continue
            display = self._resolver.resolve_display_currency(uid)
            currencies = self._resolver.resolve_asset_currencies(tickers, display)
            symbols.update(tickers)
            symbols.update(self._resolver.required_fx_symbols(set(currencies.values()), display))

        return sorted(symbols)

    def _refresh_symbol(
            self,
            symbol: str,
            latest_stored: date | None,
            today: date,
    ) -> SymbolRefreshResult:
        start = latest_stored + timedelta(days=1) if latest_stored else self._start_date
        outcome = SymbolRefreshResult(symbol=symbol, from_date=start, to_date=today)

        if start > today:
            outcome.up_to_date = True
            return outcome

        try:
            fetched = self._provider.get_daily_bars(symbol, start, today)
            # Providers may return the boundary day again
            bars = [b for b in fetched.bars if b.date >= start]
            outcome.bars_stored = self._prices.upsert_bars(symbol, bars, self._provider.name)
            self._db.commit()
        except MarketDataError as e:
            self._db.rollback()
            logger.warning(f"Refresh failed for {symbol}: {e}")
            outcome.error = str(e)

        return outcome
