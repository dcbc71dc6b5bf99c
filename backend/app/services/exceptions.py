# backend/app/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The application layer (main.py) maps them to HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidAllocationError
    │   └── InvalidDateRangeError
    ├── NotFoundError
    │   └── TransactionNotFoundError
    ├── LedgerError
    │   ├── LedgerQueryError
    │   └── RecomputeError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   └── RateLimitError
    └── FXRateError
        └── FXRateNotFoundError

Lookup failures during valuation (missing price, missing FX rate, unknown
currency) are NOT raised to callers; valuators degrade to documented
fallbacks and flag the result instead.
"""

from datetime import date


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails before any state is mutated.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidAllocationError(ValidationError):
    """
    Raised when a transaction cannot be split across its holders.

    The total share count across all holders must be non-zero.
    """

    def __init__(self, message: str = "Total shares across holders must not be zero") -> None:
        super().__init__(message, field="holders")


class InvalidDateRangeError(ValidationError):
    """Raised when a start date falls after its end date."""

    def __init__(self, start_date: date, end_date: date) -> None:
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"start_date ({start_date}) must be on or before end_date ({end_date})",
            field="start_date",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Transaction")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class TransactionNotFoundError(NotFoundError):
    """Raised when no ledger rows exist for a transaction id."""

    def __init__(self, transaction_id: int) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


# =============================================================================
# LEDGER ERRORS
# =============================================================================


class LedgerError(ServiceError):
    """Base exception for ledger store failures."""
    pass


class LedgerQueryError(LedgerError):
    """
    Raised when the ledger store cannot be read.

    Valuators surface this instead of returning an empty portfolio.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Ledger query failed: {reason}")


class RecomputeError(LedgerError):
    """
    Raised when the full-history rewrite of a (ticker, person) pair fails.

    The surrounding database transaction is rolled back, so no partial
    rewrite is ever visible.

    Attributes:
        pairs: The (ticker, person) pairs being recomputed
    """

    def __init__(self, pairs: list[tuple[str, str]], reason: str) -> None:
        self.pairs = pairs
        self.reason = reason
        scope = ", ".join(f"{t}/{p}" for t, p in pairs) or "ledger"
        super().__init__(f"Recompute failed for {scope}: {reason}")


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable
    (network timeout, server error, maintenance).

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a symbol is not known to the provider.

    This is NOT a retryable error.
    """

    def __init__(self, symbol: str, provider: str) -> None:
        message = f"Symbol '{symbol}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.symbol = symbol


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        base_currency: The base currency code
        quote_currency: The quote currency code
    """

    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXRateNotFoundError(FXRateError):
    """
    Raised by strict FX lookups when no rate is stored on or before a date.

    Attributes:
        date: The date for which the rate was requested (None = latest)
    """

    def __init__(
            self,
            base_currency: str,
            quote_currency: str,
            rate_date: date | None = None,
    ) -> None:
        self.date = rate_date
        when = f"on or before {rate_date}" if rate_date else "at any date"
        super().__init__(
            f"No FX rate found for {base_currency}/{quote_currency} {when}",
            base_currency=base_currency,
            quote_currency=quote_currency,
        )


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InvalidAllocationError",
    "InvalidDateRangeError",
    # Not Found
    "NotFoundError",
    "TransactionNotFoundError",
    # Ledger
    "LedgerError",
    "LedgerQueryError",
    "RecomputeError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # FX
    "FXRateError",
    "FXRateNotFoundError",
]
