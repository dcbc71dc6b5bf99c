# backend/app/services/market_data/base.py
"""
Abstract interface for market data providers.

A provider turns a symbol (equity ticker or "{BASE}{QUOTE}=X" FX pair)
and a date range into daily bars: close price plus the dividend paid on
that day. Everything downstream reads the stored bars, never the provider.

Design Principles:
- Dependency Inversion: the refresh service depends on this ABC only
- DRY: Common retry logic implemented once in base class
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.services.constants import ZERO
from app.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class PriceBar:
    """
    One trading day for one symbol.

    Attributes:
        date: Trading date
        close: Unadjusted closing price in the symbol's own currency
        dividend: Dividend per share paid on that date (0 on most days)
    """

    date: date
    close: Decimal
    dividend: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close price must be positive, got {self.close}")
        if self.dividend < 0:
            raise ValueError(f"dividend cannot be negative, got {self.dividend}")


@dataclass
class HistoricalPricesResult:
    """
    Result of fetching daily bars for one symbol.

    Attributes:
        symbol: The symbol requested
        bars: Bars in date order (empty if nothing was returned)
        from_date: Requested start date
        to_date: Requested end date
    """

    symbol: str
    bars: list[PriceBar] = field(default_factory=list)
    from_date: date | None = None
    to_date: date | None = None

    @property
    def days_fetched(self) -> int:
        return len(self.bars)

    @property
    def actual_to_date(self) -> date | None:
        return self.bars[-1].date if self.bars else None


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Retry Behavior:
        `_execute_with_retry` implements exponential backoff. Subclasses can
        tune it through MAX_RETRY_ATTEMPTS, RETRY_MIN_WAIT, RETRY_MAX_WAIT
        and RETRY_MULTIPLIER.

    Retryable Exceptions:
        - ProviderUnavailableError: Network issues, timeouts, server errors
        - RateLimitError: API rate limit exceeded

    Non-Retryable Exceptions:
        - TickerNotFoundError: Permanent failure (symbol doesn't exist)
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and error messages (e.g. "yahoo")."""
        pass

    @abstractmethod
    def get_daily_bars(
            self,
            symbol: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch daily bars for a single symbol.

        Args:
            symbol: Ticker or FX pair symbol (e.g. "AAPL", "USDEUR=X")
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Raises:
            TickerNotFoundError: Symbol unknown to the provider
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
