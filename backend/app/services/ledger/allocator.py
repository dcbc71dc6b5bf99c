# backend/app/services/ledger/allocator.py
"""
Split Allocator.

Splits one logical transaction across its holders in proportion to the
shares each holder takes:

    ratio        = holder_shares / total_shares
    holder_fees  = total_fees  × ratio
    holder_taxes = total_taxes × ratio
    cost_basis   = holder_shares × price_user + holder_fees + holder_taxes
    eff_price    = cost_basis / holder_shares

price_user is the per-share price converted to display currency with the
request's exchange rate. A Sell additionally produces one synthetic
RealizedGain row per holder, priced against that holder's effective WAC as of
the sell date.
"""

import logging
from collections.abc import Callable
from decimal import Decimal

from app.services.constants import ZERO
from app.services.exceptions import InvalidAllocationError, ValidationError
from app.services.ledger.cost_basis import compute_realized_pnl
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.ledger.types import (
    Allocation,
    AllocationRequest,
    RealTrade,
    RealizedGain,
    TradeSide,
)

logger = logging.getLogger(__name__)

# person -> effective WAC in force before the sell
WacLookup = Callable[[str], Decimal]


class SplitAllocator:
    """Produces per-holder ledger rows for one submission."""

    def __init__(self, normalizer: LedgerNormalizer | None = None) -> None:
        self._normalizer = normalizer or LedgerNormalizer()

    def allocate(
            self,
            request: AllocationRequest,
            transaction_id: int,
            wac_lookup: WacLookup | None = None,
    ) -> list[Allocation]:
        """
        Split a request into per-holder rows.

        Args:
            request: The logical transaction
            transaction_id: Id shared by every produced row
            wac_lookup: Required for sells; effective WAC of a holder before the sell

        Returns:
            One Allocation per holder with positive shares

        Raises:
            InvalidAllocationError: If no holder takes a positive quantity
            ValidationError: If price, rate, fees or taxes are invalid
        """
        self.validate(request)

        if request.side is TradeSide.SELL and wac_lookup is None:
            raise ValidationError("A WAC lookup is required to allocate a sell", field="side")

        holders = {
            self._normalizer.normalize_person(person): shares
            for person, shares in request.holders.items()
        }
        skipped = [p for p, s in holders.items() if s <= 0]
        if skipped:
            logger.info(f"Skipping holders without shares: {', '.join(skipped)}")

        eligible = {p: s for p, s in holders.items() if s > 0}
        total_shares = sum(eligible.values(), ZERO)
        if total_shares == 0:
            raise InvalidAllocationError()

        ticker = self._normalizer.normalize_ticker(request.ticker)
        price_user = request.price * request.exchange_rate

        allocations: list[Allocation] = []
        for person, shares in eligible.items():
            ratio = shares / total_shares
            fees = request.total_fees * ratio
            taxes = request.total_taxes * ratio
            cost_basis = shares * price_user + fees + taxes

            if request.side is TradeSide.BUY:
                total_outlay = cost_basis
            else:
                total_outlay = -(shares * price_user - fees - taxes)

            trade = RealTrade(
                ticker=ticker,
                person=person,
                operation_date=request.operation_date,
                side=request.side,
                shares=shares,
                price=price_user,
                effective_price=cost_basis / shares,
                fees=fees,
                taxes=taxes,
                total_outlay=total_outlay,
                transaction_id=transaction_id,
            )

            gain = None
            if request.side is TradeSide.SELL:
                realized = compute_realized_pnl(price_user, shares, fees, taxes, wac_lookup(person))
                gain = RealizedGain(
                    ticker=ticker,
                    person=person,
                    operation_date=request.operation_date,
                    kind=realized.kind,
                    amount=realized.pnl,
                    shares=shares,
                    price=price_user,
                    fees=fees,
                    taxes=taxes,
                    transaction_id=transaction_id,
                )
                logger.debug(
                    f"{person} sells {shares} {ticker}: proceeds={realized.proceeds_net}, "
                    f"cost_sold={realized.cost_sold}, pnl={realized.pnl}"
                )

            allocations.append(Allocation(person=person, trade=trade, gain=gain))

        return allocations

    @staticmethod
    def validate(request: AllocationRequest) -> None:
        """
        Reject a request before anything is written.

        Raises:
            ValidationError: On the first invalid field
        """
        if not request.holders:
            raise ValidationError("At least one holder is required", field="holders")
        if request.price < 0:
            raise ValidationError("Price per share cannot be negative", field="price")
        if request.exchange_rate is None or request.exchange_rate <= 0:
            raise ValidationError("Exchange rate must be positive", field="exchange_rate")
        if request.total_fees < 0:
            raise ValidationError("Fees cannot be negative", field="expenses")
        if request.total_taxes < 0:
            raise ValidationError("Taxes cannot be negative", field="taxes")
