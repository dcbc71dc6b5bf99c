# backend/app/schemas/valuation.py
"""
Pydantic schemas for portfolio valuation.

These schemas handle:
- Point-in-time snapshot of open positions
- Daily history series (exposure, market value, P&L, dividends)

Every price-dependent figure carries is_live_price so clients can mark
values computed from a cost or FX fallback.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.validators import (
    validate_person_list,
    validate_ticker_list,
)


# =============================================================================
# SNAPSHOT SCHEMAS
# =============================================================================

class PositionResponse(BaseModel):
    """Valuation of one open ticker, amounts in display currency."""

    model_config = ConfigDict(from_attributes=True)

    ticker: str
    quantity: Decimal = Field(..., description="Shares held across the selected holders")
    avg_price: Decimal = Field(..., description="Weighted average cost per share")
    total_exposure: Decimal = Field(..., description="quantity × avg_price")
    current_price: Decimal = Field(..., description="Latest close × FX (avg_price when unknown)")
    market_value: Decimal
    profit_loss: Decimal
    performance_perc: Decimal = Field(..., description="profit_loss / total_exposure × 100")
    avg_date: dt.date | None = Field(..., description="Date of the latest trade")
    price_date: dt.date | None = Field(default=None, description="Date of the close used")
    is_live_price: bool
    currency: str = Field(..., description="Display currency")
    asset_currency: str


class SnapshotResponse(BaseModel):
    """Open positions of a user at target_date."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    target_date: dt.date
    display_currency: str
    positions: list[PositionResponse]
    total_exposure: Decimal
    total_market_value: Decimal
    total_profit_loss: Decimal
    is_live: bool = Field(..., description="False if any position uses a fallback")
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# HISTORY SCHEMAS
# =============================================================================

class HistoryRequest(BaseModel):
    """
    Request body for the daily series.

    Empty tickers / people mean "all of them".
    """

    start_date: dt.date = Field(..., examples=["2024-01-01"])
    end_date: dt.date = Field(..., examples=["2024-12-31"])
    tickers: list[str] | None = Field(default=None, examples=[["AAPL", "SAP.DE"]])
    people: list[str] | None = Field(default=None, examples=[["Ana"]])

    @field_validator('tickers')
    @classmethod
    def normalize_tickers(cls, v: list[str] | None) -> list[str] | None:
        return validate_ticker_list(v)

    @field_validator('people')
    @classmethod
    def normalize_people(cls, v: list[str] | None) -> list[str] | None:
        return validate_person_list(v)


class DailyPointResponse(BaseModel):
    """One calendar day of the series."""

    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    exposure: Decimal
    market_value: Decimal
    profit_loss: Decimal
    dividends: Decimal = Field(..., description="Dividends received since start_date")
    gross_value: Decimal = Field(..., description="market_value + dividends")
    is_live_price: bool


class HistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    display_currency: str
    start_date: dt.date
    end_date: dt.date
    tickers: list[str]
    points: list[DailyPointResponse]
    warnings: list[str] = Field(default_factory=list)
