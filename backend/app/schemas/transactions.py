# backend/app/schemas/transactions.py
"""
Pydantic schemas for ledger transactions.

These schemas define:
- What a client sends to record one logical transaction (Create)
- What the API returns for ledger rows and listings (Response)

Validation layers:
- Field constraints: type, length, pattern, numeric limits
- Field validators: normalization (uppercase, trim), logical checks
- Service: allocation rules, FX resolution, recompute

IMPORTANT: All financial values use Decimal for precision.
Never use float for money!
"""

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import TransactionCategory
from app.schemas.validators import (
    validate_currency_optional,
    validate_person,
    validate_ticker,
)


# =============================================================================
# CREATE SCHEMA
# =============================================================================

class TransactionCreate(BaseModel):
    """
    One Buy or Sell, possibly shared across several holders.

    Fees and taxes are totals for the whole transaction in display currency;
    they are split across holders in proportion to their shares.
    """

    side: Literal["Buy", "Sell"] = Field(
        ...,
        description="Buy or Sell",
        examples=["Buy"]
    )

    ticker: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Yahoo Finance symbol",
        examples=["AAPL", "SAP.DE", "VWCE.DE"]
    )

    operation_date: dt.date = Field(
        ...,
        description="Trade date",
        examples=["2024-03-15"]
    )

    price_per_share: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Price per share in the asset's trading currency",
        examples=["150.50"]
    )

    currency: str | None = Field(
        default=None,
        description="Trading currency of the asset (defaults to the known asset currency)",
        examples=["USD", "EUR"]
    )

    exchange_rate: Decimal | None = Field(
        default=None,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description=(
            "1 asset currency = exchange_rate display currency. "
            "Omit to use the stored FX close for the trade date."
        ),
        examples=["1", "0.9234"]
    )

    expenses: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Total fees/commissions in display currency",
        examples=["0", "9.99"]
    )

    taxes: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Total taxes in display currency",
        examples=["0", "1.20"]
    )

    holders: dict[str, Decimal] = Field(
        ...,
        min_length=1,
        description="Shares taken by each holder; holders with 0 are skipped",
        examples=[{"Ana": "10", "Luis": "5"}]
    )

    platform: str | None = Field(default=None, max_length=100, examples=["Degiro"])
    account_owner: str | None = Field(default=None, max_length=100)
    regulated: bool = Field(default=True, description="Traded through a regulated market")
    sector: str | None = Field(default=None, max_length=100, examples=["Technology"])

    # =========================================================================
    # FIELD VALIDATORS (Normalization & Validation)
    # =========================================================================

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str | None) -> str | None:
        return validate_currency_optional(v)

    @field_validator('operation_date')
    @classmethod
    def validate_date_not_in_future(cls, v: dt.date) -> dt.date:
        """Prevent recording transactions that haven't happened yet."""
        if v > dt.date.today():
            raise ValueError(f"Transaction date cannot be in the future (sent: {v})")
        return v

    @field_validator('holders')
    @classmethod
    def validate_holders(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        normalized: dict[str, Decimal] = {}
        for person, shares in v.items():
            if shares < 0:
                raise ValueError(f"Shares for '{person}' cannot be negative")
            name = validate_person(person)
            normalized[name] = normalized.get(name, Decimal("0")) + shares
        return normalized


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class LedgerPair(BaseModel):
    """A (ticker, person) position whose history was rewritten."""

    ticker: str
    person: str


class TransactionSubmitResponse(BaseModel):
    transaction_id: int = Field(..., description="Id shared by every row of the submission")
    rows_created: int = Field(..., description="Ledger rows written (incl. Profit/Loss rows)")
    pairs_recomputed: list[LedgerPair]


class TransactionDeleteResponse(BaseModel):
    transaction_id: int
    rows_deleted: int
    pairs_recomputed: list[LedgerPair]


class LedgerEntryResponse(BaseModel):
    """One stored ledger row, computed columns included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: int
    ticker: str
    operation_date: dt.date
    person: str
    category: TransactionCategory
    buy_or_sell: int
    operation_sign: int
    shares_count: Decimal
    price_per_share_user_curr: Decimal
    effective_price_per_share_user_curr: Decimal
    total_outlay_user_curr: Decimal
    transaction_fees_user_curr: Decimal
    transaction_taxes_user_curr: Decimal
    average_price_user_curr: Decimal
    effective_average_price_user_curr: Decimal
    cumulative_shares: Decimal
    historical_fifo_avg_date: dt.date | None = None
    asset_currency: str | None = None
    exchange_rate_at_purchase: Decimal | None = None
    platform: str | None = None
    account_owner: str | None = None
    regulated: bool = True
    sector: str | None = None
    created_at: dt.datetime


class LedgerTotalsResponse(BaseModel):
    """Column totals over the real trades of a listing."""

    total_outlay: Decimal = Field(..., description="Net cash invested (buys - net sale proceeds)")
    shares_count: Decimal = Field(..., description="Net shares (bought - sold)")
    fees: Decimal
    taxes: Decimal
    realized_pnl: Decimal = Field(..., description="Sum of the Profit/Loss rows")


class TransactionListResponse(BaseModel):
    items: list[LedgerEntryResponse]
    count: int
    totals: LedgerTotalsResponse


class RecomputeRequest(BaseModel):
    """Explicit rebuild of one ticker, for one holder or all of them."""

    ticker: str = Field(..., examples=["AAPL"])
    person: str | None = Field(default=None, description="All holders of the ticker when omitted")

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('person')
    @classmethod
    def normalize_person(cls, v: str | None) -> str | None:
        return validate_person(v) if v is not None else None


class RecomputeResponse(BaseModel):
    pairs_recomputed: list[LedgerPair]
