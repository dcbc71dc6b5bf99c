# backend/app/services/ledger/cost_basis.py
"""
Cost-Basis Recalculation Engine (Weighted Average Cost).

Replays the complete ordered history of ONE (ticker, person) pair and
derives, for every row, the WAC and effective WAC immediately after it.

WAC Formula:
    Buy:   cost     += price × qty
           eff_cost += effective_price × qty
           shares   += qty
           avg = cost / shares, eff_avg = eff_cost / shares

    Sell:  cost     -= avg × qty
           eff_cost -= eff_avg × qty
           shares   -= qty
           shares <= 1e-6  →  the whole state resets to 0

Realized P/L of a sell is measured against the effective WAC, so buy
costs are part of the cost sold.

Example:
    Buy 10 @ 100 + 5 fee       → cost 1000, avg 100; eff_cost 1005, eff_avg 100.5
    Sell 4 @ 120 (2 fee, 1 tax) → cost_sold 402, proceeds 477, P/L +75
                                  shares 6, eff_cost 603, eff_avg 100.5

Synthetic RealizedGain rows never move the state; they record the WAC in
force at their position in the order. The engine is a pure function of the
ordered rows: replaying the same rows twice yields identical output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from app.services.constants import QUANTITY_EPSILON, ZERO
from app.services.ledger.fifo import FifoLotTracker
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.ledger.types import (
    CostBasisState,
    LedgerRow,
    RealTrade,
    RealizedGain,
    RealizedPnL,
    RecomputedRow,
    TradeSide,
)

logger = logging.getLogger(__name__)


def apply_trade(state: CostBasisState, trade: RealTrade) -> None:
    """
    Apply one real trade to a running WAC state (mutates state).

    Args:
        state: Running state of the position
        trade: Buy or Sell to apply
    """
    qty = trade.shares

    if trade.side is TradeSide.BUY:
        state.cost += trade.price * qty
        state.eff_cost += trade.effective_price * qty
        state.shares += qty
        if state.shares > 0:
            state.avg = state.cost / state.shares
            state.eff_avg = state.eff_cost / state.shares
        else:
            state.avg = ZERO
            state.eff_avg = ZERO
        return

    state.cost -= state.avg * qty
    state.eff_cost -= state.eff_avg * qty
    state.shares -= qty

    if state.shares <= QUANTITY_EPSILON:
        # Closed position: the next buy restarts WAC from scratch
        state.shares = ZERO
        state.cost = ZERO
        state.eff_cost = ZERO
        state.avg = ZERO
        state.eff_avg = ZERO


def compute_realized_pnl(
        price: Decimal,
        shares: Decimal,
        fees: Decimal,
        taxes: Decimal,
        wac_before: Decimal,
) -> RealizedPnL:
    """
    Realized P/L of a sale against the WAC in force before it.

    proceeds_net = price × shares − fees − taxes
    cost_sold    = wac_before × shares
    pnl          = proceeds_net − cost_sold
    """
    proceeds_net = price * shares - fees - taxes
    cost_sold = wac_before * shares
    return RealizedPnL(
        proceeds_net=proceeds_net,
        cost_sold=cost_sold,
        pnl=proceeds_net - cost_sold,
    )


class CostBasisEngine:
    """
    Full-history WAC + FIFO replay for one (ticker, person) pair.

    Usage:
        engine = CostBasisEngine()
        results = engine.recompute(rows)      # rows in any order
        wac = engine.wac_as_of(rows, date(2023, 2, 1))
    """

    def __init__(self, normalizer: LedgerNormalizer | None = None) -> None:
        self._normalizer = normalizer or LedgerNormalizer()

    def recompute(self, rows: Iterable[LedgerRow]) -> list[RecomputedRow]:
        """
        Replay all rows of one pair and derive their computed fields.

        Args:
            rows: Every row of the pair, any order

        Returns:
            RecomputedRow per input row, in replay order
        """
        ordered = self._normalizer.order(rows)
        state = CostBasisState()
        lots = FifoLotTracker()
        results: list[RecomputedRow] = []

        for row in ordered:
            if isinstance(row, RealizedGain):
                results.append(self._snapshot(row, state, None))
                continue

            pnl = None
            if row.side is TradeSide.SELL:
                pnl = compute_realized_pnl(
                    row.price, row.shares, row.fees, row.taxes, state.eff_avg
                ).pnl

            apply_trade(state, row)
            lots.apply(row)
            results.append(self._snapshot(row, state, lots.average_date(), pnl))

        logger.debug(
            f"Replayed {len(results)} rows, final shares={state.shares}, avg={state.avg}"
        )
        return results

    def state_as_of(self, rows: Iterable[LedgerRow], target_date: date) -> CostBasisState:
        """
        WAC state after the last real trade on or before target_date.

        No prior trades yields the zero state, not an error.
        """
        state = CostBasisState()
        for row in self._normalizer.order(rows):
            if row.operation_date > target_date:
                break
            if isinstance(row, RealTrade):
                apply_trade(state, row)
        return state

    def wac_as_of(self, rows: Iterable[LedgerRow], target_date: date) -> Decimal:
        """Average price as of target_date (0 when there is no history)."""
        return self.state_as_of(rows, target_date).avg

    def effective_wac_as_of(self, rows: Iterable[LedgerRow], target_date: date) -> Decimal:
        """Effective average price as of target_date; the basis for realized P/L."""
        return self.state_as_of(rows, target_date).eff_avg

    @staticmethod
    def _snapshot(
            row: LedgerRow,
            state: CostBasisState,
            fifo_avg_date: date | None,
            realized_pnl: Decimal | None = None,
    ) -> RecomputedRow:
        return RecomputedRow(
            row=row,
            average_price=state.avg,
            effective_average_price=state.eff_avg,
            cumulative_shares=state.shares,
            fifo_avg_date=fifo_avg_date,
            realized_pnl=realized_pnl,
        )


# =============================================================================
# SIMPLIFIED POSITION REPLAY (valuation)
# =============================================================================

@dataclass
class PositionState:
    """
    Quantity and cost of one ticker for valuation purposes.

    Cost and average are the effective ones (buy fees and taxes included),
    the same basis realized P/L is measured against.
    """

    state: CostBasisState = field(default_factory=CostBasisState)
    last_trade_date: date | None = None

    @property
    def quantity(self) -> Decimal:
        return self.state.shares

    @property
    def cost(self) -> Decimal:
        return self.state.eff_cost

    @property
    def avg_price(self) -> Decimal:
        return self.state.eff_avg

    @property
    def is_open(self) -> bool:
        return self.state.shares > QUANTITY_EPSILON


class PositionAccumulator:
    """
    Per-ticker running quantity and cost, rebuilt from real trades only.

    Used by the snapshot valuator and the series builder. It does not read the
    stored average_price columns, so a stale recompute cannot skew valuations.
    Trades of every selected holder of a ticker feed the same position.
    """

    def __init__(self) -> None:
        self._positions: dict[str, PositionState] = {}

    def apply(self, row: LedgerRow) -> None:
        """Apply a real trade; synthetic rows are ignored."""
        if not isinstance(row, RealTrade):
            return
        position = self._positions.setdefault(row.ticker, PositionState())
        apply_trade(position.state, row)
        position.last_trade_date = row.operation_date

    def apply_all(self, rows: Iterable[LedgerRow]) -> None:
        for row in rows:
            self.apply(row)

    def open_positions(self) -> dict[str, PositionState]:
        """Positions with quantity above the closed-position tolerance."""
        return {t: p for t, p in self._positions.items() if p.is_open}

    def get(self, ticker: str) -> PositionState | None:
        return self._positions.get(ticker)
