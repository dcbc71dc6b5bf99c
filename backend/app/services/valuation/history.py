# backend/app/services/valuation/history.py
"""
Historical Series Builder: one DailyPoint per calendar day.

Uses the rolling-state pattern: trades before the range seed the positions,
then each day applies only its own trades before it is valued. Every price
and FX lookup comes from two in-memory pandas tables built up front:

    closes     daily index [start - PRICE_LOOKBACK_DAYS, end], one column per
               symbol, forward-filled over weekends and holidays
    dividends  same shape, 0 where nothing was paid (never forward-filled)

The look-back rows let the first day of the range pick up the last close
before it. FX columns use the stored "{ASSET}{DISPLAY}=X" pair, or the
inverse of "{DISPLAY}{ASSET}=X" where only that one is stored.

Complexity: O(D + T) for D days and T trades, plus 1 ledger query and 1
market data query.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal

import pandas as pd

from app.services.constants import ONE, PRICE_LOOKBACK_DAYS, ZERO
from app.services.currency import CurrencyResolver
from app.services.exceptions import InvalidDateRangeError
from app.services.ledger.cost_basis import PositionAccumulator
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.ledger.types import RealTrade
from app.services.protocols import LedgerClient, PriceSource
from app.services.valuation.types import DailyPoint, SeriesResult
from app.utils.date_utils import iter_days

logger = logging.getLogger(__name__)


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


class HistoricalSeriesBuilder:
    """
    Builds the daily exposure / market value / P&L / dividends series.

    Example:
        builder = HistoricalSeriesBuilder(ledger, prices, resolver)
        result = builder.build_series("user-1", date(2024, 1, 1), date(2024, 3, 31))
        for point in result.points:
            print(point.date, point.market_value)
    """

    def __init__(
            self,
            ledger: LedgerClient,
            prices: PriceSource,
            currency_resolver: CurrencyResolver,
            normalizer: LedgerNormalizer | None = None,
            lookback_days: int = PRICE_LOOKBACK_DAYS,
    ) -> None:
        self._ledger = ledger
        self._prices = prices
        self._currency = currency_resolver
        self._normalizer = normalizer or LedgerNormalizer()
        self._lookback_days = lookback_days

    def build_series(
            self,
            user_id: str,
            start_date: date,
            end_date: date,
            tickers: Sequence[str] | None = None,
            people: Sequence[str] | None = None,
    ) -> SeriesResult:
        """
        Compute one point per calendar day in [start_date, end_date].

        Raises:
            InvalidDateRangeError: If start_date is after end_date
            LedgerQueryError: If the ledger cannot be read
        """
        if start_date > end_date:
            raise InvalidDateRangeError(start_date, end_date)

        display_currency = self._currency.resolve_display_currency(user_id)
        result = SeriesResult(
            user_id=user_id,
            display_currency=display_currency,
            start_date=start_date,
            end_date=end_date,
        )

        # Step 1: ALL trades up to end_date, in replay order
        entries = self._ledger.query_entries(
            user_id, tickers=tickers, people=people, end_date=end_date
        )
        trades = [
            row for row in self._normalizer.order(self._normalizer.from_entries(entries))
            if isinstance(row, RealTrade)
        ]

        # Step 2: Seed with everything before the range, bucket the rest by day
        accumulator = PositionAccumulator()
        trades_by_day: dict[date, list[RealTrade]] = defaultdict(list)
        for trade in trades:
            if trade.operation_date < start_date:
                accumulator.apply(trade)
            else:
                trades_by_day[trade.operation_date].append(trade)

        result.tickers = sorted({t.ticker for t in trades})
        if not result.tickers:
            result.points = [
                DailyPoint(date=day, exposure=ZERO, market_value=ZERO, profit_loss=ZERO, dividends=ZERO)
                for day in iter_days(start_date, end_date)
            ]
            return result

        # Step 3: Price and FX tables
        asset_currencies = self._currency.resolve_asset_currencies(result.tickers, display_currency)
        closes, dividends = self._build_tables(result.tickers, asset_currencies, display_currency, start_date, end_date)
        fx_columns = self._fx_columns(closes, set(asset_currencies.values()), display_currency)

        for ticker in result.tickers:
            if closes[ticker].isna().all():
                result.warnings.append(f"{ticker}: no market prices in range, valued at cost")

        # Step 4: Rolling state
        cumulative_dividends = ZERO
        for day in iter_days(start_date, end_date):
            for trade in trades_by_day.get(day, []):
                accumulator.apply(trade)

            ts = pd.Timestamp(day)
            exposure = ZERO
            market_value = ZERO
            is_live = True

            for ticker, position in accumulator.open_positions().items():
                asset_currency = asset_currencies[ticker]
                rate, fx_live = self._rate_on(fx_columns, asset_currency, display_currency, ts)

                exposure += position.cost
                close = closes.at[ts, ticker]
                if pd.isna(close):
                    market_value += position.cost
                    is_live = False
                else:
                    market_value += position.quantity * _to_decimal(close) * rate
                    is_live = is_live and fx_live

                dividend = dividends.at[ts, ticker]
                if dividend > 0:
                    cumulative_dividends += position.quantity * _to_decimal(dividend) * rate

            result.points.append(DailyPoint(
                date=day,
                exposure=exposure,
                market_value=market_value,
                profit_loss=market_value - exposure,
                dividends=cumulative_dividends,
                is_live_price=is_live,
            ))

        logger.info(
            f"Built {len(result.points)} daily points for {user_id} "
            f"({len(result.tickers)} tickers, {start_date} to {end_date})"
        )
        return result

    # =========================================================================
    # TABLES
    # =========================================================================

    def _build_tables(
            self,
            tickers: list[str],
            asset_currencies: dict[str, str],
            display_currency: str,
            start_date: date,
            end_date: date,
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        """Forward-filled closes and raw dividends for tickers and FX pairs."""
        fx_symbols: list[str] = []
        for currency in sorted(set(asset_currencies.values())):
            if currency != display_currency:
                fx_symbols.append(self._currency.fx_pair_symbol(currency, display_currency))
                fx_symbols.append(self._currency.fx_pair_symbol(display_currency, currency))

        symbols = tickers + fx_symbols
        window_start = start_date - timedelta(days=self._lookback_days)
        series = self._prices.get_series(symbols, window_start, end_date)

        records = [
            (symbol, pd.Timestamp(bar.date), float(bar.close), float(bar.dividend))
            for symbol, bars in series.items()
            for bar in bars
        ]
        index = pd.date_range(window_start, end_date, freq="D")

        if not records:
            empty = pd.DataFrame(index=index, columns=symbols, dtype=float)
            return empty, empty.fillna(0.0)

        frame = pd.DataFrame.from_records(records, columns=["symbol", "date", "close", "dividend"])
        closes = (
            frame.pivot_table(index="date", columns="symbol", values="close", aggfunc="last")
            .reindex(index=index, columns=symbols)
            .ffill()
        )
        dividends = (
            frame.pivot_table(index="date", columns="symbol", values="dividend", aggfunc="sum")
            .reindex(index=index, columns=symbols)
            .fillna(0.0)
        )
        return closes, dividends

    def _fx_columns(
            self,
            closes: pd.DataFrame,
            currencies: set[str],
            display_currency: str,
    ) -> dict[str, pd.Series]:
        """Per asset currency: daily rate into display currency (NaN when unknown)."""
        columns: dict[str, pd.Series] = {}
        for currency in currencies:
            if currency == display_currency:
                continue
            direct = closes[self._currency.fx_pair_symbol(currency, display_currency)]
            inverse = closes[self._currency.fx_pair_symbol(display_currency, currency)]
            columns[currency] = direct.combine_first(1.0 / inverse)
            if columns[currency].isna().all():
                logger.warning(f"No {currency}/{display_currency} rates stored; converting at 1.0")
        return columns

    @staticmethod
    def _rate_on(
            fx_columns: dict[str, pd.Series],
            asset_currency: str,
            display_currency: str,
            ts: pd.Timestamp,
    ) -> tuple[Decimal, bool]:
        if asset_currency == display_currency:
            return ONE, True
        value = fx_columns[asset_currency].at[ts]
        if pd.isna(value):
            return ONE, False
        return _to_decimal(value), True
