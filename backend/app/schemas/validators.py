# backend/app/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Ticker validation and normalization
- Holder name validation
- Currency code validation

Functions raise ValueError so Pydantic reports them as 422 errors.
"""

import re

# =============================================================================
# CONSTANTS
# =============================================================================

# Ticker: Yahoo symbols such as AAPL, SAP.DE, BRK-B, ^GSPC, EURUSD=X
TICKER_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-=]{0,31}$')
TICKER_MAX_LENGTH = 32

PERSON_MAX_LENGTH = 100

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')


# =============================================================================
# TICKER VALIDATION
# =============================================================================

def validate_ticker(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Raises:
        ValueError: If ticker format is invalid
    """
    if not value:
        raise ValueError("Ticker cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > TICKER_MAX_LENGTH:
        raise ValueError(f"Ticker cannot exceed {TICKER_MAX_LENGTH} characters")

    if not TICKER_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ticker format: '{normalized}'. "
            "Ticker must be alphanumeric and may include '.', '-', '=' or a leading '^'"
        )

    return normalized


def validate_ticker_list(values: list[str] | None) -> list[str] | None:
    """Validate each ticker of an optional filter list, dropping duplicates."""
    if not values:
        return None
    return list(dict.fromkeys(validate_ticker(v) for v in values))


# =============================================================================
# HOLDER VALIDATION
# =============================================================================

def validate_person(value: str) -> str:
    """
    Trim a holder name.

    Raises:
        ValueError: If the name is empty or too long
    """
    normalized = (value or "").strip()
    if not normalized:
        raise ValueError("Holder name cannot be empty")
    if len(normalized) > PERSON_MAX_LENGTH:
        raise ValueError(f"Holder name cannot exceed {PERSON_MAX_LENGTH} characters")
    return normalized


def validate_person_list(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    return list(dict.fromkeys(validate_person(v) for v in values))


# =============================================================================
# CURRENCY VALIDATION
# =============================================================================

def validate_currency(value: str) -> str:
    """
    Validate and normalize a currency code.

    Raises:
        ValueError: If currency format is invalid
    """
    if not value:
        raise ValueError("Currency cannot be empty")

    normalized = value.strip().upper()

    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid currency format: '{normalized}'. "
            "Currency must be a 3-letter ISO code (e.g., USD, EUR)"
        )

    return normalized


def validate_currency_optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return validate_currency(value)
