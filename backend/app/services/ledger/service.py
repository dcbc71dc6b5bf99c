# backend/app/services/ledger/service.py
"""
Ledger service: the write path of the ledger.

Every mutation follows the same shape:

    1. Validate the input (nothing is locked or written yet)
    2. Lock every affected (user, ticker, person) pair, open one transaction
    3. Append / delete rows
    4. Replay the FULL history of each affected pair and overwrite its
       computed columns (WAC, effective WAC, cumulative shares, FIFO date)
       and the P/L of its synthetic Profit/Loss rows
    5. Commit; any failure rolls back all pairs together

Design Principles:
- No HTTP Knowledge: raises domain exceptions from app.services.exceptions
- Collaborators are injected (LedgerClient, CurrencyResolver, AssetDirectory,
  PairLockRegistry); one instance per request
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from app.models import LedgerEntry, TransactionCategory
from app.services.constants import ZERO
from app.services.currency import CurrencyResolver
from app.services.exceptions import (
    InvalidAllocationError,
    InvalidDateRangeError,
    RecomputeError,
    ServiceError,
    TransactionNotFoundError,
)
from app.services.ledger.allocator import SplitAllocator
from app.services.ledger.cost_basis import CostBasisEngine
from app.services.ledger.locks import PairKey, PairLockRegistry
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.ledger.types import (
    AllocationRequest,
    DeleteResult,
    GainKind,
    LedgerTotals,
    RealTrade,
    SubmitResult,
    TradeSide,
)
from app.services.protocols import AssetDirectory, LedgerClient

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Submits, deletes and recomputes ledger transactions.

    Example:
        service = LedgerService(SqlLedgerClient(db), resolver, assets, locks)
        result = service.submit_transaction("user-1", request)
        service.delete_transaction("user-1", result.transaction_id)
    """

    def __init__(
            self,
            ledger: LedgerClient,
            currency_resolver: CurrencyResolver,
            assets: AssetDirectory,
            locks: PairLockRegistry,
            normalizer: LedgerNormalizer | None = None,
            engine: CostBasisEngine | None = None,
            allocator: SplitAllocator | None = None,
    ) -> None:
        self._ledger = ledger
        self._currency = currency_resolver
        self._assets = assets
        self._locks = locks
        self._normalizer = normalizer or LedgerNormalizer()
        self._engine = engine or CostBasisEngine(self._normalizer)
        self._allocator = allocator or SplitAllocator(self._normalizer)

    # =========================================================================
    # SUBMIT
    # =========================================================================

    def submit_transaction(self, user_id: str, request: AllocationRequest) -> SubmitResult:
        """
        Split a transaction across its holders, append it and recompute.

        Raises:
            ValidationError: Invalid request (nothing is written)
            InvalidAllocationError: No holder takes a positive quantity
            RecomputeError: The rewrite failed; nothing is written
        """
        ticker = self._normalizer.normalize_ticker(request.ticker)
        currency = (request.currency or "").strip().upper()
        display_currency = self._currency.resolve_display_currency(user_id)
        if not currency:
            currency = self._currency.resolve_asset_currency(ticker, display_currency)

        if request.exchange_rate is None:
            fx = self._currency.get_fx_rate(currency, display_currency, request.operation_date)
            if not fx.is_live:
                logger.warning(
                    f"No stored {currency}/{display_currency} rate for {request.operation_date}; "
                    f"{ticker} submitted at rate 1"
                )
            request = replace(request, exchange_rate=fx.rate)

        request = replace(request, ticker=ticker, currency=currency)
        self._allocator.validate(request)

        people = sorted({
            self._normalizer.normalize_person(person)
            for person, shares in request.holders.items()
            if shares > 0
        })
        if not people:
            raise InvalidAllocationError()

        keys: list[PairKey] = [(user_id, ticker, person) for person in people]
        pairs = [(ticker, person) for person in people]

        try:
            with self._locks.hold(keys), self._ledger.atomic():
                transaction_id = self._ledger.open_transaction(user_id, ticker)

                history = self._normalizer.group_by_pair(
                    self._normalizer.from_entries(
                        self._ledger.query_entries(user_id, tickers=[ticker], people=people)
                    )
                )

                def wac_before(person: str) -> Decimal:
                    return self._engine.effective_wac_as_of(
                        history.get((ticker, person), []), request.operation_date
                    )

                allocations = self._allocator.allocate(request, transaction_id, wac_before)

                if self._assets.get_currency(ticker) is None:
                    self._assets.register(ticker, currency, sector=request.sector)

                metadata = dict(
                    asset_currency=currency,
                    exchange_rate_at_purchase=request.exchange_rate,
                    platform=request.platform,
                    account_owner=request.account_owner,
                    regulated=request.regulated,
                    sector=request.sector,
                )
                entries: list[LedgerEntry] = []
                for allocation in allocations:
                    entries.append(self._normalizer.to_entry(allocation.trade, user_id, **metadata))
                    if allocation.gain is not None:
                        entries.append(self._normalizer.to_entry(allocation.gain, user_id, **metadata))
                self._ledger.add_entries(entries)

                for person in people:
                    self._recompute_pair(user_id, ticker, person)

        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Submission for {user_id}/{ticker} failed: {e}")
            raise RecomputeError(pairs, str(e)) from e

        logger.info(
            f"Transaction {transaction_id} recorded: {request.side.value} "
            f"{request.total_shares} {ticker} across {len(people)} holder(s)"
        )
        return SubmitResult(
            transaction_id=transaction_id,
            rows_created=len(entries),
            pairs_recomputed=pairs,
        )

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_transaction(self, user_id: str, transaction_id: int) -> DeleteResult:
        """
        Remove every row of a transaction and recompute the affected pairs.

        Raises:
            TransactionNotFoundError: No rows with that id for this user
            RecomputeError: The rewrite failed; nothing is deleted
        """
        existing = self._ledger.entries_for_transaction(user_id, transaction_id)
        if not existing:
            raise TransactionNotFoundError(transaction_id)

        pairs = sorted({(e.ticker, e.person) for e in existing})
        keys: list[PairKey] = [(user_id, ticker, person) for ticker, person in pairs]

        try:
            with self._locks.hold(keys), self._ledger.atomic():
                # Re-read under the lock: a concurrent delete may have won
                entries = self._ledger.entries_for_transaction(user_id, transaction_id)
                if not entries:
                    raise TransactionNotFoundError(transaction_id)

                self._ledger.delete_entries(entries)
                self._ledger.drop_transaction(transaction_id)
                for ticker, person in pairs:
                    self._recompute_pair(user_id, ticker, person)

        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Deleting transaction {transaction_id} failed: {e}")
            raise RecomputeError(list(pairs), str(e)) from e

        logger.info(f"Transaction {transaction_id} deleted ({len(entries)} rows)")
        return DeleteResult(
            transaction_id=transaction_id,
            rows_deleted=len(entries),
            pairs_recomputed=list(pairs),
        )

    # =========================================================================
    # RECOMPUTE
    # =========================================================================

    def recompute(self, user_id: str, ticker: str, person: str | None = None) -> list[tuple[str, str]]:
        """
        Explicit full rebuild of one pair, or of every holder of a ticker.

        Returns:
            The (ticker, person) pairs that were rewritten
        """
        ticker = self._normalizer.normalize_ticker(ticker)
        if person is not None:
            people = [self._normalizer.normalize_person(person)]
        else:
            people = sorted({e.person for e in self._ledger.query_entries(user_id, tickers=[ticker])})

        pairs = [(ticker, p) for p in people]
        if not pairs:
            return []

        try:
            with self._locks.hold([(user_id, ticker, p) for p in people]), self._ledger.atomic():
                for p in people:
                    self._recompute_pair(user_id, ticker, p)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Recompute of {ticker} for {user_id} failed: {e}")
            raise RecomputeError(pairs, str(e)) from e

        logger.info(f"Recomputed {len(pairs)} pair(s) of {ticker} for {user_id}")
        return pairs

    def _recompute_pair(self, user_id: str, ticker: str, person: str) -> int:
        """
        Rewrite the computed columns of one pair. Caller holds lock + transaction.

        Returns:
            Number of rows rewritten
        """
        entries = self._ledger.query_entries(user_id, tickers=[ticker], people=[person])
        by_id = {e.id: e for e in entries}
        results = self._engine.recompute(self._normalizer.from_entries(entries))

        sell_pnl: dict[int, Decimal] = {}
        for result in results:
            self._normalizer.apply_recomputed(by_id[result.row.entry_id], result)
            if result.realized_pnl is not None:
                sell_pnl[result.row.transaction_id] = result.realized_pnl

        # Realized P/L depends on everything before the sell
        for entry in entries:
            if entry.buy_or_sell == 0 and entry.transaction_id in sell_pnl:
                pnl = sell_pnl[entry.transaction_id]
                kind = GainKind.PROFIT if pnl >= 0 else GainKind.LOSS
                entry.category = TransactionCategory(kind.value)
                entry.operation_sign = 1 if kind is GainKind.PROFIT else -1
                entry.total_outlay_user_curr = pnl

        logger.debug(f"Recomputed {len(results)} rows of {ticker}/{person}")
        return len(results)

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_transactions(
            self,
            user_id: str,
            tickers: Sequence[str] | None = None,
            people: Sequence[str] | None = None,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> tuple[list[LedgerEntry], LedgerTotals]:
        """
        Ledger rows newest first, with totals over the real trades.

        Totals ignore the synthetic Profit/Loss rows, which repeat the
        shares and costs of the sell they belong to.

        Raises:
            InvalidDateRangeError: If start_date is after end_date
            LedgerQueryError: If the ledger cannot be read
        """
        if start_date is not None and end_date is not None and start_date > end_date:
            raise InvalidDateRangeError(start_date, end_date)

        entries = self._ledger.query_entries(
            user_id,
            tickers=tickers,
            people=people,
            start_date=start_date,
            end_date=end_date,
        )
        entries.sort(
            key=lambda e: (e.operation_date, e.transaction_id, e.buy_or_sell, e.id),
            reverse=True,
        )

        totals = LedgerTotals()
        for row in self._normalizer.from_entries(entries):
            if not isinstance(row, RealTrade):
                continue
            totals.total_outlay += row.total_outlay
            totals.shares_count += row.shares if row.side is TradeSide.BUY else -row.shares
            totals.fees += row.fees
            totals.taxes += row.taxes

        return entries, totals

    @staticmethod
    def realized_total(entries: Sequence[LedgerEntry]) -> Decimal:
        """Sum of the synthetic Profit/Loss amounts in a listing."""
        return sum(
            (Decimal(e.total_outlay_user_curr) for e in entries if e.buy_or_sell == 0),
            ZERO,
        )
