# backend/app/services/ledger/fifo.py
"""
FIFO Lot Tracker.

Keeps the open lots of one (ticker, person) pair in arrival order. Sells
consume the oldest lots first; the quantity-weighted average acquisition
date of what is left is reported after every real trade:

    avg_date = Σ(epoch(lot.date) × lot.qty) / Σ(lot.qty)

Example:
    lots [{d1, 5}, {d2, 3}], sell 6  →  [{d2, 2}]
"""

import logging
from collections import deque
from datetime import date
from decimal import Decimal

from app.services.ledger.types import FifoLot, RealTrade, TradeSide
from app.utils.date_utils import date_to_epoch, epoch_to_date

logger = logging.getLogger(__name__)


class FifoLotTracker:
    """Open-lot queue for one (ticker, person) pair."""

    def __init__(self) -> None:
        self._lots: deque[FifoLot] = deque()

    @property
    def lots(self) -> list[FifoLot]:
        """Copy of the open lots, oldest first."""
        return [FifoLot(lot.acquisition_date, lot.remaining) for lot in self._lots]

    def apply(self, trade: RealTrade) -> None:
        if trade.side is TradeSide.BUY:
            self.push(trade.operation_date, trade.shares)
        else:
            self.consume(trade.shares)

    def push(self, acquisition_date: date, quantity: Decimal) -> None:
        """Open a new lot; non-positive quantities are ignored."""
        if quantity <= 0:
            return
        self._lots.append(FifoLot(acquisition_date=acquisition_date, remaining=quantity))

    def consume(self, quantity: Decimal) -> Decimal:
        """
        Remove quantity from the oldest lots.

        Returns:
            Quantity that could not be matched to any lot (overselling)
        """
        remaining = quantity
        while remaining > 0 and self._lots:
            oldest = self._lots[0]
            if oldest.remaining <= remaining:
                remaining -= oldest.remaining
                self._lots.popleft()
            else:
                oldest.remaining -= remaining
                remaining = Decimal("0")

        if remaining > 0:
            logger.warning(f"FIFO sell exceeds open lots by {remaining}")
        return remaining

    def average_date(self) -> date | None:
        """Quantity-weighted average acquisition date, None without lots."""
        total_qty = sum((lot.remaining for lot in self._lots), Decimal("0"))
        if total_qty <= 0:
            return None
        weighted = sum(
            (Decimal(date_to_epoch(lot.acquisition_date)) * lot.remaining for lot in self._lots),
            Decimal("0"),
        )
        return epoch_to_date(float(weighted / total_qty))
