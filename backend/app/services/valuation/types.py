# backend/app/services/valuation/types.py
"""
Internal data types for the valuators.

These dataclasses are NOT Pydantic schemas - those are defined in
app/schemas/valuation.py for API serialization.

Design Principles:
- Use Decimal for ALL financial values (never float)
- Every price-dependent figure carries is_live_price
- Warnings accumulate for data quality tracking

Type Hierarchy:
    PositionView      - One open ticker at a point in time
    PortfolioSnapshot - All open positions at a point in time
    DailyPoint        - One calendar day of the historical series
    SeriesResult      - The historical series
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from app.services.constants import HUNDRED, ZERO


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class PositionView:
    """
    Valuation of one open ticker, in display currency.

    Attributes:
        quantity: Shares held across the selected holders
        avg_price: WAC per share
        total_exposure: quantity × avg_price (capital at risk)
        current_price: Latest close × FX, or avg_price when no close is stored
        avg_date: Date of the latest real trade of the ticker
        is_live_price: False when the price or the FX rate is a fallback
        currency: Display currency of every amount above
        asset_currency: Trading currency of the ticker
    """

    ticker: str
    quantity: Decimal
    avg_price: Decimal
    total_exposure: Decimal
    current_price: Decimal
    avg_date: date | None
    is_live_price: bool
    currency: str
    asset_currency: str
    price_date: date | None = None

    @property
    def market_value(self) -> Decimal:
        return self.quantity * self.current_price

    @property
    def profit_loss(self) -> Decimal:
        return self.market_value - self.total_exposure

    @property
    def performance_perc(self) -> Decimal:
        if self.total_exposure == 0:
            return ZERO
        return self.profit_loss / self.total_exposure * HUNDRED


@dataclass
class PortfolioSnapshot:
    """Open positions of a user at target_date, sorted by exposure desc."""

    user_id: str
    target_date: date
    display_currency: str
    positions: list[PositionView] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_exposure(self) -> Decimal:
        return sum((p.total_exposure for p in self.positions), ZERO)

    @property
    def total_market_value(self) -> Decimal:
        return sum((p.market_value for p in self.positions), ZERO)

    @property
    def total_profit_loss(self) -> Decimal:
        return self.total_market_value - self.total_exposure

    @property
    def is_live(self) -> bool:
        return all(p.is_live_price for p in self.positions)


# =============================================================================
# HISTORICAL SERIES
# =============================================================================

@dataclass(frozen=True)
class DailyPoint:
    """
    One calendar day of the series, in display currency.

    Attributes:
        exposure: Cost basis of the positions held at the end of the day
        market_value: Positions valued at the (forward-filled) close
        profit_loss: market_value - exposure
        dividends: Dividends received from the series start up to this day
        is_live_price: False if any position was valued at cost or FX 1.0
    """

    date: date
    exposure: Decimal
    market_value: Decimal
    profit_loss: Decimal
    dividends: Decimal
    is_live_price: bool = True

    @property
    def gross_value(self) -> Decimal:
        return self.market_value + self.dividends


@dataclass
class SeriesResult:
    """Daily series for a user over [start_date, end_date]."""

    user_id: str
    display_currency: str
    start_date: date
    end_date: date
    points: list[DailyPoint] = field(default_factory=list)
    tickers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
