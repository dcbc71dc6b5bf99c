# backend/app/services/market_data/yahoo.py
"""
Yahoo Finance market data provider implementation.

Implements MarketDataProvider with the yfinance library. Equity tickers
are passed through as-is (the ledger stores Yahoo symbols such as "SAP.DE")
and FX pairs use Yahoo's own "{BASE}{QUOTE}=X" convention, so no symbol
mapping is needed.

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
"""

import logging
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import pandas as pd
import yfinance as yf

from app.services.constants import ZERO
from app.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from app.services.market_data.base import (
    MarketDataProvider,
    PriceBar,
    HistoricalPricesResult,
)

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    Yahoo Finance implementation of MarketDataProvider.

    Configuration:
        timeout: API request timeout in seconds (default: 10)

    Example:
        provider = YahooFinanceProvider(timeout=15)
        result = provider.get_daily_bars("AAPL", date(2024, 1, 1), date(2024, 12, 31))
        print(f"Fetched {result.days_fetched} days of data")
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooFinanceProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # DAILY BARS
    # =========================================================================

    def get_daily_bars(
            self,
            symbol: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch unadjusted daily closes and dividends from Yahoo Finance.

        Raises:
            TickerNotFoundError: If symbol not found
            ProviderUnavailableError: If Yahoo Finance unavailable
        """
        return self._execute_with_retry(
            self._fetch_daily_bars,
            symbol,
            start_date,
            end_date,
        )

    def _fetch_daily_bars(
            self,
            symbol: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """Internal method to fetch daily bars (called by retry wrapper)."""
        symbol = symbol.strip().upper()
        logger.debug(f"Fetching daily bars for {symbol}: {start_date} to {end_date}")

        result = HistoricalPricesResult(symbol=symbol, from_date=start_date, to_date=end_date)

        try:
            yf_ticker = yf.Ticker(symbol)

            # Yahoo Finance end date is exclusive, so add 1 day
            yahoo_end = end_date + timedelta(days=1)

            df = yf_ticker.history(
                start=start_date.isoformat(),
                end=yahoo_end.isoformat(),
                interval="1d",
                auto_adjust=False,  # Raw closes; dividends are accounted separately
                actions=True,
                timeout=self._timeout,
            )

            if df.empty:
                info = yf_ticker.info
                if not self._is_valid_ticker_info(info):
                    raise TickerNotFoundError(symbol=symbol, provider=self.name)

                logger.warning(f"No price data for {symbol} between {start_date} and {end_date}")
                return result

            result.bars = self._dataframe_to_bars(df)
            logger.debug(f"Fetched {len(result.bars)} days for {symbol}")
            return result

        except TickerNotFoundError:
            raise
        except Exception as e:
            error_str = str(e).lower()

            if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
                raise TickerNotFoundError(symbol=symbol, provider=self.name)

            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)

            logger.error(f"Yahoo Finance error for {symbol}: {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

    def _dataframe_to_bars(self, df: pd.DataFrame) -> list[PriceBar]:
        """
        Convert a yfinance history DataFrame to PriceBars.

        Rows without a close are skipped. Missing dividends count as 0.
        """
        bars: list[PriceBar] = []

        for idx, row in df.iterrows():
            price_date = idx.date() if hasattr(idx, 'date') else idx

            close_price = self._to_decimal(row.get('Close'))
            if close_price is None or close_price <= 0:
                logger.warning(f"Skipping {price_date}: missing close price")
                continue

            dividend = self._to_decimal(row.get('Dividends')) or ZERO

            try:
                bars.append(PriceBar(date=price_date, close=close_price, dividend=dividend))
            except ValueError as e:
                logger.warning(f"Error parsing row {idx}: {e}")

        bars.sort(key=lambda b: b.date)
        return bars

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(Decimal("0.00000001"))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _is_valid_ticker_info(info: dict | None) -> bool:
        """
        Yahoo returns an info dict even for invalid symbols, but it lacks
        meaningful data. We check for price or name to validate.
        """
        if not info:
            return False
        return bool(
            info.get("regularMarketPrice")
            or info.get("shortName")
            or info.get("longName")
        )
