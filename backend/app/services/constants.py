# backend/app/services/constants.py
"""
Centralized constants for the ledger and valuation services.

Usage:
    from app.services.constants import (
        QUANTITY_EPSILON,
        FX_SYMBOL_SUFFIX,
        PRICE_LOOKBACK_DAYS,
    )
"""

from decimal import Decimal


# =============================================================================
# LEDGER ARITHMETIC
# =============================================================================

# Held quantity at or below this is treated as a closed position.
# A sell that leaves the position inside this band resets the WAC state.
QUANTITY_EPSILON: Decimal = Decimal("0.000001")

ZERO: Decimal = Decimal("0")
ONE: Decimal = Decimal("1")
HUNDRED: Decimal = Decimal("100")


# =============================================================================
# CURRENCIES
# =============================================================================

# Yahoo-style synthetic FX symbol: "{BASE}{QUOTE}=X" (1 BASE = close QUOTE)
FX_SYMBOL_SUFFIX: str = "=X"


# =============================================================================
# PRICE LOOK-BACK
# =============================================================================

# Days before a history range that are loaded so forward-fill has a seed
# value on weekends and holidays at the start of the range
PRICE_LOOKBACK_DAYS: int = 10


# =============================================================================
# RATE LIMITS (slowapi format: "count/period")
# =============================================================================

RATE_LIMIT_DEFAULT: str = "100/minute"
RATE_LIMIT_WRITE: str = "30/minute"
RATE_LIMIT_REFRESH: str = "5/minute"
RATE_LIMIT_HEALTH: str = "200/minute"
