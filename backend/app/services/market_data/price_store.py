# backend/app/services/market_data/price_store.py
"""
Stored daily bars: the PriceSource used by the valuators and the write
side used by the refresh job.

Writes are ON CONFLICT DO NOTHING on (symbol, date), so re-running a
refresh over an already stored range changes nothing.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.models import MarketData
from app.services.constants import ZERO
from app.services.market_data.base import PriceBar

logger = logging.getLogger(__name__)


class SqlPriceSource:
    """Daily closes and dividends backed by the market_data table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # =========================================================================
    # READS
    # =========================================================================

    def get_series(
            self,
            symbols: Sequence[str],
            start_date: date,
            end_date: date,
    ) -> dict[str, list[PriceBar]]:
        """Bars per symbol within [start_date, end_date], ascending by date."""
        series: dict[str, list[PriceBar]] = defaultdict(list)
        if not symbols:
            return {}

        rows = self._db.execute(
            select(MarketData.symbol, MarketData.date, MarketData.close_price, MarketData.dividend)
            .where(
                MarketData.symbol.in_(list(symbols)),
                MarketData.date >= start_date,
                MarketData.date <= end_date,
            )
            .order_by(MarketData.symbol, MarketData.date)
        ).all()

        for symbol, bar_date, close, dividend in rows:
            series[symbol].append(PriceBar(
                date=bar_date,
                close=Decimal(close),
                dividend=Decimal(dividend) if dividend is not None else ZERO,
            ))
        return dict(series)

    def get_latest_close(
            self,
            symbol: str,
            on_or_before: date | None = None,
    ) -> tuple[date, Decimal] | None:
        """Most recent (date, close) for symbol, optionally capped at a date."""
        query = select(MarketData.date, MarketData.close_price).where(MarketData.symbol == symbol)
        if on_or_before is not None:
            query = query.where(MarketData.date <= on_or_before)

        row = self._db.execute(query.order_by(MarketData.date.desc()).limit(1)).first()
        if row is None:
            return None
        return row[0], Decimal(row[1])

    def latest_dates(self, symbols: Sequence[str]) -> dict[str, date]:
        """Latest stored date per symbol; symbols with no data are absent."""
        if not symbols:
            return {}
        rows = self._db.execute(
            select(MarketData.symbol, func.max(MarketData.date))
            .where(MarketData.symbol.in_(list(symbols)))
            .group_by(MarketData.symbol)
        ).all()
        return {symbol: latest for symbol, latest in rows if latest is not None}

    # =========================================================================
    # WRITES
    # =========================================================================

    def upsert_bars(self, symbol: str, bars: Sequence[PriceBar], provider: str) -> int:
        """
        Insert bars for one symbol, skipping dates that already exist.

        Flushes but does not commit.

        Returns:
            Number of bars submitted
        """
        if not bars:
            return 0

        records = [
            {
                "symbol": symbol,
                "date": bar.date,
                "close_price": bar.close,
                "dividend": bar.dividend,
                "provider": provider,
            }
            for bar in bars
        ]

        dialect = self._db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert(MarketData).values(records)
        stmt = stmt.on_conflict_do_nothing(index_elements=["symbol", "date"])
        self._db.execute(stmt)
        self._db.flush()

        logger.debug(f"Stored {len(records)} bars for {symbol}")
        return len(records)
