# backend/app/services/ledger/normalizer.py
"""
Ledger Normalizer.

Turns stored ledger rows into typed LedgerRow variants and back, and owns
the canonical replay order:

    (operation_date ASC, buy_or_sell DESC, transaction_id ASC, entry_id ASC)

Real trades therefore come before same-day synthetic rows, and rows of the
same kind on the same day keep submission order.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from app.models import LedgerEntry, TransactionCategory
from app.services.constants import ZERO
from app.services.exceptions import ValidationError
from app.services.ledger.types import (
    GainKind,
    LedgerRow,
    RealTrade,
    RealizedGain,
    RecomputedRow,
    TradeSide,
)

logger = logging.getLogger(__name__)


class LedgerNormalizer:
    """Coerces raw ledger values and orders rows for replay."""

    # =========================================================================
    # FIELD COERCION
    # =========================================================================

    @staticmethod
    def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
        """
        Coerce a raw numeric value to Decimal.

        None, empty strings and NaN become `default`. Floats go through str()
        so 0.1 stays 0.1.

        Raises:
            ValidationError: If the value is not numeric
        """
        if value is None:
            return default
        if isinstance(value, Decimal):
            return default if value.is_nan() else value
        if isinstance(value, bool):
            raise ValidationError(f"Expected a number, got {value!r}")
        if isinstance(value, float):
            if math.isnan(value):
                return default
            return Decimal(str(value))
        if isinstance(value, int):
            return Decimal(value)
        text = str(value).strip().replace(",", ".")
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"Expected a number, got {value!r}")
        return default if result.is_nan() else result

    @staticmethod
    def to_date(value: Any) -> date:
        """
        Coerce a date, datetime or ISO string (time part ignored) to a date.

        Raises:
            ValidationError: If the value cannot be parsed
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}", field="operation_date")

    @staticmethod
    def normalize_ticker(ticker: str) -> str:
        ticker = (ticker or "").strip().upper()
        if not ticker:
            raise ValidationError("Ticker is required", field="ticker")
        return ticker

    @staticmethod
    def normalize_person(person: str) -> str:
        person = (person or "").strip()
        if not person:
            raise ValidationError("Holder name is required", field="person")
        return person

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def from_entry(self, entry: LedgerEntry) -> LedgerRow:
        """Build the typed variant for a stored ledger entry."""
        category = TransactionCategory(entry.category)
        common = dict(
            ticker=self.normalize_ticker(entry.ticker),
            person=entry.person,
            operation_date=self.to_date(entry.operation_date),
            shares=abs(self.to_decimal(entry.shares_count)),
            price=self.to_decimal(entry.price_per_share_user_curr),
            fees=self.to_decimal(entry.transaction_fees_user_curr),
            taxes=self.to_decimal(entry.transaction_taxes_user_curr),
            transaction_id=entry.transaction_id,
            entry_id=entry.id,
        )

        if category.is_real_trade:
            return RealTrade(
                side=TradeSide(category.value),
                effective_price=self.to_decimal(
                    entry.effective_price_per_share_user_curr,
                    default=self.to_decimal(entry.price_per_share_user_curr),
                ),
                total_outlay=self.to_decimal(entry.total_outlay_user_curr),
                **common,
            )

        amount = abs(self.to_decimal(entry.total_outlay_user_curr))
        kind = GainKind(category.value)
        return RealizedGain(
            kind=kind,
            amount=amount if kind is GainKind.PROFIT else -amount,
            **common,
        )

    def from_entries(self, entries: Iterable[LedgerEntry]) -> list[LedgerRow]:
        return [self.from_entry(e) for e in entries]

    @staticmethod
    def to_entry(row: LedgerRow, user_id: str, **metadata: Any) -> LedgerEntry:
        """
        Build a new LedgerEntry for a row.

        Derived fields are zeroed here; the recompute pass fills them in.
        """
        if isinstance(row, RealTrade):
            effective_price = row.effective_price
        else:
            effective_price = row.price

        return LedgerEntry(
            transaction_id=row.transaction_id,
            user_id=user_id,
            ticker=row.ticker,
            operation_date=row.operation_date,
            person=row.person,
            category=row.category,
            buy_or_sell=row.buy_or_sell,
            operation_sign=row.operation_sign,
            shares_count=row.shares,
            price_per_share_user_curr=row.price,
            effective_price_per_share_user_curr=effective_price,
            total_outlay_user_curr=row.total_outlay,
            transaction_fees_user_curr=row.fees,
            transaction_taxes_user_curr=row.taxes,
            average_price_user_curr=ZERO,
            effective_average_price_user_curr=ZERO,
            cumulative_shares=ZERO,
            historical_fifo_avg_date=None,
            **metadata,
        )

    @staticmethod
    def apply_recomputed(entry: LedgerEntry, result: RecomputedRow) -> None:
        """Overwrite the derived columns of a stored entry."""
        entry.average_price_user_curr = result.average_price
        entry.effective_average_price_user_curr = result.effective_average_price
        entry.cumulative_shares = result.cumulative_shares
        entry.historical_fifo_avg_date = result.fifo_avg_date

    # =========================================================================
    # ORDERING
    # =========================================================================

    @staticmethod
    def sort_key(row: LedgerRow) -> tuple:
        return (
            row.operation_date,
            -row.buy_or_sell,
            row.transaction_id,
            row.entry_id if row.entry_id is not None else 0,
        )

    def order(self, rows: Iterable[LedgerRow]) -> list[LedgerRow]:
        """Return rows in canonical replay order."""
        return sorted(rows, key=self.sort_key)

    def group_by_pair(self, rows: Iterable[LedgerRow]) -> dict[tuple[str, str], list[LedgerRow]]:
        """Group rows by (ticker, person), each group in replay order."""
        groups: dict[tuple[str, str], list[LedgerRow]] = defaultdict(list)
        for row in rows:
            groups[(row.ticker, row.person)].append(row)
        return {pair: self.order(group) for pair, group in groups.items()}
