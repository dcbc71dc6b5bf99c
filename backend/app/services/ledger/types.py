# backend/app/services/ledger/types.py
"""
Internal data types for the ledger services.

Ledger rows are a tagged variant:

    LedgerRow = RealTrade | RealizedGain

RealTrade rows (Buy/Sell) move the position. RealizedGain rows
(Profit/Loss) are synthetic reporting rows written next to each Sell; they
never move the position. buy_or_sell and operation_sign are derived from the
variant, so the replay in cost_basis.py can match on the type instead of a
flag.

These are plain dataclasses, NOT Pydantic models (those live in
app/schemas/ for API validation).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from app.models import TransactionCategory


class TradeSide(str, enum.Enum):
    BUY = "Buy"
    SELL = "Sell"


class GainKind(str, enum.Enum):
    PROFIT = "Profit"
    LOSS = "Loss"


# =============================================================================
# LEDGER ROW VARIANTS
# =============================================================================

@dataclass(frozen=True)
class RealTrade:
    """
    A Buy or Sell of shares for one holder.

    Amounts are in the holder's display currency. total_outlay is positive
    for buys (cash spent incl. costs) and negative for sells (net proceeds).

    Attributes:
        entry_id: Ledger primary key (None before the row is persisted)
    """

    ticker: str
    person: str
    operation_date: date
    side: TradeSide
    shares: Decimal
    price: Decimal
    effective_price: Decimal
    fees: Decimal
    taxes: Decimal
    total_outlay: Decimal
    transaction_id: int
    entry_id: int | None = None

    @property
    def buy_or_sell(self) -> int:
        return 1

    @property
    def operation_sign(self) -> int:
        return 1 if self.side is TradeSide.BUY else -1

    @property
    def category(self) -> TransactionCategory:
        return TransactionCategory(self.side.value)


@dataclass(frozen=True)
class RealizedGain:
    """
    Synthetic realized gain/loss row written alongside a Sell.

    amount is the signed P/L (negative for a Loss); shares and price repeat
    the sell they belong to.
    """

    ticker: str
    person: str
    operation_date: date
    kind: GainKind
    amount: Decimal
    shares: Decimal
    price: Decimal
    fees: Decimal
    taxes: Decimal
    transaction_id: int
    entry_id: int | None = None

    @property
    def buy_or_sell(self) -> int:
        return 0

    @property
    def operation_sign(self) -> int:
        return 1 if self.kind is GainKind.PROFIT else -1

    @property
    def category(self) -> TransactionCategory:
        return TransactionCategory(self.kind.value)

    @property
    def total_outlay(self) -> Decimal:
        return self.amount


LedgerRow = RealTrade | RealizedGain


# =============================================================================
# REPLAY STATE AND OUTPUT
# =============================================================================

@dataclass
class CostBasisState:
    """Running WAC state of one (ticker, person) pair."""

    shares: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    eff_cost: Decimal = Decimal("0")
    avg: Decimal = Decimal("0")
    eff_avg: Decimal = Decimal("0")


@dataclass(frozen=True)
class RecomputedRow:
    """
    A ledger row with its derived fields after replay.

    Attributes:
        average_price: WAC immediately after the row was applied
        effective_average_price: effective WAC after the row
        cumulative_shares: signed running share total after the row
        fifo_avg_date: FIFO average acquisition date (RealTrade rows only)
        realized_pnl: P/L of a Sell against the WAC before it (Sell rows only)
    """

    row: LedgerRow
    average_price: Decimal
    effective_average_price: Decimal
    cumulative_shares: Decimal
    fifo_avg_date: date | None = None
    realized_pnl: Decimal | None = None


@dataclass
class FifoLot:
    """Open lot: shares acquired on one date and not yet sold."""

    acquisition_date: date
    remaining: Decimal


@dataclass(frozen=True)
class RealizedPnL:
    """Outcome of selling shares against a WAC."""

    proceeds_net: Decimal
    cost_sold: Decimal
    pnl: Decimal

    @property
    def kind(self) -> GainKind:
        return GainKind.PROFIT if self.pnl >= 0 else GainKind.LOSS


# =============================================================================
# SUBMISSION
# =============================================================================

@dataclass
class AllocationRequest:
    """
    One logical transaction before it is split across holders.

    price is per share in the asset's trading currency; exchange_rate converts
    it to display currency (1 asset currency = exchange_rate display
    currency). total_fees and total_taxes are already in display currency.
    An exchange_rate of None is resolved from stored FX closes on submission.
    """

    side: TradeSide
    ticker: str
    operation_date: date
    price: Decimal
    currency: str
    exchange_rate: Decimal | None
    total_fees: Decimal
    total_taxes: Decimal
    holders: dict[str, Decimal]
    platform: str | None = None
    account_owner: str | None = None
    regulated: bool = True
    sector: str | None = None

    @property
    def total_shares(self) -> Decimal:
        return sum(self.holders.values(), Decimal("0"))


@dataclass(frozen=True)
class Allocation:
    """The rows produced for one holder."""

    person: str
    trade: RealTrade
    gain: RealizedGain | None = None


@dataclass
class SubmitResult:
    """Result of submit_transaction."""

    transaction_id: int
    rows_created: int
    pairs_recomputed: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class DeleteResult:
    """Result of delete_transaction."""

    transaction_id: int
    rows_deleted: int
    pairs_recomputed: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class LedgerTotals:
    """Column totals over a ledger listing."""

    total_outlay: Decimal = Decimal("0")
    shares_count: Decimal = Decimal("0")
    fees: Decimal = Decimal("0")
    taxes: Decimal = Decimal("0")
