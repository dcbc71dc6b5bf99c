# backend/tests/services/test_yahoo_provider.py
"""
Tests for the YahooFinanceProvider.

This module tests:
- Conversion of yfinance history frames to PriceBars
- Ticker info validation
- Error handling and classification
- Retry of transient failures

Note: These tests mock the yfinance library to avoid actual API calls.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from app.services.exceptions import (
    TickerNotFoundError,
    ProviderUnavailableError,
    RateLimitError,
)
from app.services.market_data.yahoo import YahooFinanceProvider


def history_frame(rows: dict[str, tuple[float, float]]) -> pd.DataFrame:
    """yfinance-shaped frame: DatetimeIndex with Close and Dividends columns."""
    index = pd.DatetimeIndex([pd.Timestamp(d) for d in rows])
    return pd.DataFrame(
        {
            "Open": [close for close, _ in rows.values()],
            "Close": [close for close, _ in rows.values()],
            "Dividends": [dividend for _, dividend in rows.values()],
        },
        index=index,
    )


@pytest.fixture
def fast_provider() -> YahooFinanceProvider:
    """Provider whose retries do not sleep."""
    provider = YahooFinanceProvider()
    provider.RETRY_MIN_WAIT = 0
    provider.RETRY_MAX_WAIT = 0
    provider.RETRY_MULTIPLIER = 0
    return provider


# =============================================================================
# PROVIDER INITIALIZATION
# =============================================================================

class TestYahooProviderInit:
    """Tests for provider initialization."""

    def test_provider_name(self):
        """Provider name should be 'yahoo'."""
        provider = YahooFinanceProvider()
        assert provider.name == "yahoo"

    def test_default_timeout(self):
        provider = YahooFinanceProvider()
        assert provider._timeout == 10

    def test_custom_timeout(self):
        provider = YahooFinanceProvider(timeout=30)
        assert provider._timeout == 30


# =============================================================================
# DATAFRAME CONVERSION
# =============================================================================

class TestDataFrameToBars:
    """Tests for _dataframe_to_bars()."""

    def test_closes_and_dividends(self):
        frame = history_frame({
            "2024-01-03": (101.5, 0.0),
            "2024-01-02": (100.25, 0.24),
        })

        bars = YahooFinanceProvider()._dataframe_to_bars(frame)

        assert [b.date for b in bars] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert bars[0].close == Decimal("100.25")
        assert bars[0].dividend == Decimal("0.24")
        assert bars[1].dividend == Decimal("0")

    def test_rows_without_close_skipped(self):
        frame = history_frame({
            "2024-01-02": (float("nan"), 0.0),
            "2024-01-03": (0.0, 0.0),
            "2024-01-04": (99.0, 0.0),
        })

        bars = YahooFinanceProvider()._dataframe_to_bars(frame)

        assert [b.date for b in bars] == [date(2024, 1, 4)]

    def test_missing_dividend_column(self):
        frame = history_frame({"2024-01-02": (10.0, 0.0)}).drop(columns=["Dividends"])

        [bar] = YahooFinanceProvider()._dataframe_to_bars(frame)

        assert bar.dividend == Decimal("0")

    @pytest.mark.parametrize("value, expected", [
        (1.123456789, Decimal("1.12345679")),
        (None, None),
        (float("nan"), None),
        ("abc", None),
    ])
    def test_to_decimal(self, value, expected):
        assert YahooFinanceProvider._to_decimal(value) == expected


# =============================================================================
# TICKER INFO VALIDATION
# =============================================================================

class TestTickerInfoValidation:
    """Tests for _is_valid_ticker_info()."""

    @pytest.mark.parametrize("info", [
        {"regularMarketPrice": 150.0},
        {"shortName": "Apple"},
        {"longName": "Apple Inc."},
    ])
    def test_valid_info(self, info):
        assert YahooFinanceProvider._is_valid_ticker_info(info) is True

    @pytest.mark.parametrize("info", [None, {}, {"trailingPegRatio": None}])
    def test_invalid_info(self, info):
        assert YahooFinanceProvider._is_valid_ticker_info(info) is False


# =============================================================================
# DAILY BARS WITH MOCKED YFINANCE
# =============================================================================

class TestGetDailyBars:
    """Tests for get_daily_bars() with mocked yfinance."""

    @patch('app.services.market_data.yahoo.yf')
    def test_successful_fetch(self, mock_yf):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = history_frame({"2024-01-02": (185.64, 0.0)})
        mock_yf.Ticker.return_value = mock_ticker

        result = YahooFinanceProvider().get_daily_bars(" aapl ", date(2024, 1, 2), date(2024, 1, 5))

        assert result.symbol == "AAPL"
        assert [b.close for b in result.bars] == [Decimal("185.64")]
        mock_yf.Ticker.assert_called_once_with("AAPL")

    @patch('app.services.market_data.yahoo.yf')
    def test_end_date_is_made_inclusive(self, mock_yf):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = history_frame({"2024-01-02": (1.0, 0.0)})
        mock_yf.Ticker.return_value = mock_ticker

        YahooFinanceProvider(timeout=7).get_daily_bars("USDEUR=X", date(2024, 1, 1), date(2024, 1, 31))

        kwargs = mock_ticker.history.call_args.kwargs
        assert kwargs["start"] == "2024-01-01"
        assert kwargs["end"] == "2024-02-01"
        assert kwargs["auto_adjust"] is False
        assert kwargs["timeout"] == 7

    @patch('app.services.market_data.yahoo.yf')
    def test_empty_frame_for_valid_ticker(self, mock_yf):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = pd.DataFrame()
        mock_ticker.info = {"shortName": "Apple"}
        mock_yf.Ticker.return_value = mock_ticker

        result = YahooFinanceProvider().get_daily_bars("AAPL", date(2024, 1, 6), date(2024, 1, 7))

        assert result.bars == []

    @patch('app.services.market_data.yahoo.yf')
    def test_empty_frame_for_unknown_ticker(self, mock_yf):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = pd.DataFrame()
        mock_ticker.info = {}
        mock_yf.Ticker.return_value = mock_ticker

        with pytest.raises(TickerNotFoundError) as exc_info:
            YahooFinanceProvider().get_daily_bars("NOPE", date(2024, 1, 1), date(2024, 1, 2))

        assert exc_info.value.symbol == "NOPE"
        assert exc_info.value.provider == "yahoo"
        # Permanent failures are not retried
        assert mock_yf.Ticker.call_count == 1

    @patch('app.services.market_data.yahoo.yf')
    def test_delisted_message_maps_to_not_found(self, mock_yf):
        mock_yf.Ticker.side_effect = Exception("AAPLX: possibly delisted; no timezone found")

        with pytest.raises(TickerNotFoundError):
            YahooFinanceProvider().get_daily_bars("AAPLX", date(2024, 1, 1), date(2024, 1, 2))

    @patch('app.services.market_data.yahoo.yf')
    def test_rate_limit_error(self, mock_yf, fast_provider):
        mock_yf.Ticker.side_effect = Exception("Too many requests")

        with pytest.raises(RateLimitError) as exc_info:
            fast_provider.get_daily_bars("AAPL", date(2024, 1, 1), date(2024, 1, 2))

        assert exc_info.value.provider == "yahoo"

    @patch('app.services.market_data.yahoo.yf')
    def test_network_error_retried_then_raised(self, mock_yf, fast_provider):
        mock_yf.Ticker.side_effect = Exception("Connection timeout")

        with pytest.raises(ProviderUnavailableError):
            fast_provider.get_daily_bars("AAPL", date(2024, 1, 1), date(2024, 1, 2))

        assert mock_yf.Ticker.call_count == fast_provider.MAX_RETRY_ATTEMPTS

    @patch('app.services.market_data.yahoo.yf')
    def test_transient_error_recovers(self, mock_yf, fast_provider):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = history_frame({"2024-01-02": (5.0, 0.0)})
        mock_yf.Ticker.side_effect = [Exception("Connection reset"), mock_ticker]

        result = fast_provider.get_daily_bars("AAPL", date(2024, 1, 1), date(2024, 1, 2))

        assert len(result.bars) == 1
