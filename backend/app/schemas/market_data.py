# backend/app/schemas/market_data.py
"""
Pydantic schemas for the market data refresh.

These schemas handle:
- Refresh requests (one user or everyone)
- Per-symbol refresh outcomes
"""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MarketDataRefreshRequest(BaseModel):
    """Schema for refreshing stored market data."""

    user_id: str | None = Field(
        default=None,
        max_length=64,
        description="Only the tickers and FX pairs this user needs; everyone when omitted"
    )


class SymbolRefreshResponse(BaseModel):
    """Outcome for a single symbol."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str = Field(..., examples=["AAPL", "USDEUR=X"])
    from_date: dt.date | None = Field(..., description="First date requested from the provider")
    to_date: dt.date | None = Field(..., description="Last date requested from the provider")
    bars_stored: int
    up_to_date: bool = Field(..., description="Nothing to fetch: latest stored bar is today")
    success: bool
    error: str | None = None


class MarketDataRefreshResponse(BaseModel):
    """Refresh summary."""

    model_config = ConfigDict(from_attributes=True)

    status: Literal["completed", "partial", "failed"]
    bars_stored: int
    symbols: list[SymbolRefreshResponse]
    warnings: list[str] = Field(default_factory=list)
