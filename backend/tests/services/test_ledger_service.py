# backend/tests/services/test_ledger_service.py
"""
Integration tests for LedgerService against an in-memory SQLite ledger.

This module tests:
- Submissions writing one row per holder plus synthetic P/L rows
- Derived columns rewritten for the whole pair history
- Back-dated inserts and deletes refreshing later P/L rows
- Listing order, filters and totals
- Currency handling on submission
- Transaction id allocation across sessions
- All-or-nothing rewrites when a pair fails to recompute
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.models import Asset, LedgerEntry, LedgerTransaction, TransactionCategory
from app.services.asset_directory import SqlAssetDirectory
from app.services.currency import CurrencyResolver
from app.services.exceptions import (
    InvalidAllocationError,
    InvalidDateRangeError,
    RecomputeError,
    TransactionNotFoundError,
    ValidationError,
)
from app.services.ledger import LedgerService, PairLockRegistry, SqlLedgerClient, TradeSide
from app.services.market_data.price_store import SqlPriceSource
from app.services.user_preferences_service import SqlPreferenceStore
from tests.factories import USER_ID, add_bars, make_request, set_display_currency


def rows_for(db, person: str = "Ana", ticker: str = "AAPL") -> list[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.person == person, LedgerEntry.ticker == ticker)
        .order_by(LedgerEntry.operation_date, LedgerEntry.buy_or_sell.desc(), LedgerEntry.id)
        .all()
    )


def service_on(session) -> LedgerService:
    """A LedgerService with its own session, as a second request would have."""
    assets = SqlAssetDirectory(session)
    resolver = CurrencyResolver(
        SqlPreferenceStore(session), assets, SqlPriceSource(session), default_currency="EUR"
    )
    return LedgerService(SqlLedgerClient(session), resolver, assets, PairLockRegistry())


def computed_columns(entry: LedgerEntry) -> tuple:
    return (
        Decimal(entry.average_price_user_curr),
        Decimal(entry.effective_average_price_user_curr),
        Decimal(entry.cumulative_shares),
        entry.historical_fifo_avg_date,
    )


def fail_recompute_for(service: LedgerService, monkeypatch, person: str) -> None:
    """Make the rewrite of one holder's pair raise."""
    original = service._recompute_pair

    def recompute_pair(user_id, ticker, holder):
        if holder == person:
            raise RuntimeError("disk full")
        return original(user_id, ticker, holder)

    monkeypatch.setattr(service, "_recompute_pair", recompute_pair)


def gain_row(db, transaction_id: int, person: str = "Ana") -> LedgerEntry:
    return (
        db.query(LedgerEntry)
        .filter(
            LedgerEntry.transaction_id == transaction_id,
            LedgerEntry.person == person,
            LedgerEntry.buy_or_sell == 0,
        )
        .one()
    )


class TestSubmit:
    """Tests for submit_transaction()."""

    def test_buy_writes_one_row_per_holder(self, db, ledger_service):
        result = ledger_service.submit_transaction(
            USER_ID, make_request(holders={"Ana": "6", "Ben": "4"}, fees="10")
        )

        assert result.rows_created == 2
        assert result.pairs_recomputed == [("AAPL", "Ana"), ("AAPL", "Ben")]
        assert db.query(LedgerEntry).count() == 2
        assert Decimal(rows_for(db, "Ana")[0].transaction_fees_user_curr) == Decimal("6")
        assert Decimal(rows_for(db, "Ben")[0].transaction_fees_user_curr) == Decimal("4")

    def test_transaction_ids_increase(self, ledger_service):
        first = ledger_service.submit_transaction(USER_ID, make_request())
        second = ledger_service.submit_transaction("someone-else", make_request())

        assert second.transaction_id == first.transaction_id + 1

    def test_derived_columns_filled(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(price="100", fees="5"))

        [entry] = rows_for(db)

        assert Decimal(entry.average_price_user_curr) == Decimal("100")
        assert Decimal(entry.effective_average_price_user_curr) == Decimal("100.5")
        assert Decimal(entry.cumulative_shares) == Decimal("10")
        assert entry.historical_fifo_avg_date == date(2024, 1, 10)

    def test_sell_writes_synthetic_profit_row(self, db, ledger_service):
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", fees="5", operation_date=date(2023, 1, 1))
        )
        result = ledger_service.submit_transaction(USER_ID, make_request(
            side=TradeSide.SELL, price="120", holders={"Ana": "4"}, fees="2", taxes="1",
            operation_date=date(2023, 2, 1),
        ))

        assert result.rows_created == 2
        gain = gain_row(db, result.transaction_id)
        assert gain.category == TransactionCategory.PROFIT
        assert Decimal(gain.total_outlay_user_curr) == Decimal("75")

        sell = rows_for(db)[1]
        assert sell.category == TransactionCategory.SELL
        assert Decimal(sell.cumulative_shares) == Decimal("6")
        assert Decimal(sell.average_price_user_curr) == Decimal("100")

    def test_zero_share_holder_gets_no_row(self, db, ledger_service):
        result = ledger_service.submit_transaction(
            USER_ID, make_request(holders={"Ana": "5", "Ben": "0"})
        )

        assert result.rows_created == 1
        assert rows_for(db, "Ben") == []

    def test_all_zero_holders_rejected(self, db, ledger_service):
        with pytest.raises(InvalidAllocationError):
            ledger_service.submit_transaction(USER_ID, make_request(holders={"Ana": "0"}))

        assert db.query(LedgerEntry).count() == 0

    def test_invalid_request_writes_nothing(self, db, ledger_service):
        with pytest.raises(ValidationError):
            ledger_service.submit_transaction(USER_ID, make_request(price="-5"))

        assert db.query(LedgerEntry).count() == 0

    def test_unknown_ticker_is_registered(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(ticker="aapl", currency="USD"))

        asset = db.query(Asset).filter(Asset.ticker == "AAPL").one()
        assert asset.currency == "USD"

    def test_known_ticker_keeps_its_currency(self, db, ledger_service, asset_directory):
        asset_directory.register("AAPL", "USD")
        db.commit()

        ledger_service.submit_transaction(USER_ID, make_request(currency="GBP"))

        assert asset_directory.get_currency("AAPL") == "USD"

    def test_missing_currency_resolved_from_directory(self, db, ledger_service, asset_directory):
        asset_directory.register("AAPL", "USD")
        db.commit()

        ledger_service.submit_transaction(USER_ID, make_request(currency=""))

        assert rows_for(db)[0].asset_currency == "USD"

    def test_missing_exchange_rate_read_from_stored_fx(self, db, ledger_service):
        add_bars(db, "USDEUR=X", {date(2024, 1, 9): "0.9"})

        ledger_service.submit_transaction(USER_ID, make_request(
            price="200", currency="USD", exchange_rate=None, holders={"Ana": "1"},
        ))

        [entry] = rows_for(db)
        assert Decimal(entry.exchange_rate_at_purchase) == Decimal("0.9")
        assert Decimal(entry.price_per_share_user_curr) == Decimal("180")

    def test_missing_exchange_rate_without_fx_uses_one(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(
            price="200", currency="USD", exchange_rate=None, holders={"Ana": "1"},
        ))

        assert Decimal(rows_for(db)[0].exchange_rate_at_purchase) == Decimal("1")

    def test_exchange_rate_converts_to_display_currency(self, db, ledger_service):
        set_display_currency(db, USER_ID, "USD")
        add_bars(db, "EURUSD=X", {date(2024, 1, 10): "1.25"})

        ledger_service.submit_transaction(USER_ID, make_request(
            price="100", currency="EUR", exchange_rate=None, holders={"Ana": "1"},
        ))

        assert Decimal(rows_for(db)[0].price_per_share_user_curr) == Decimal("125")


class TestRecomputeOnWrite:
    """Back-dated writes rewrite the whole pair history."""

    def test_back_dated_buy_refreshes_later_sell_pnl(self, db, ledger_service):
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", operation_date=date(2024, 1, 1))
        )
        sell = ledger_service.submit_transaction(USER_ID, make_request(
            side=TradeSide.SELL, price="110", holders={"Ana": "10"}, operation_date=date(2024, 3, 1),
        ))
        assert Decimal(gain_row(db, sell.transaction_id).total_outlay_user_curr) == Decimal("100")

        # 10 more at 130 before the sell: WAC 115, the sell is now a loss
        ledger_service.submit_transaction(
            USER_ID, make_request(price="130", operation_date=date(2024, 2, 1))
        )

        gain = gain_row(db, sell.transaction_id)
        assert gain.category == TransactionCategory.LOSS
        assert Decimal(gain.total_outlay_user_curr) == Decimal("-50")
        assert Decimal(rows_for(db)[-2].cumulative_shares) == Decimal("10")

    def test_sell_priced_against_wac_on_its_own_date(self, db, ledger_service):
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", operation_date=date(2024, 1, 1))
        )
        ledger_service.submit_transaction(
            USER_ID, make_request(price="300", operation_date=date(2024, 6, 1))
        )

        sell = ledger_service.submit_transaction(USER_ID, make_request(
            side=TradeSide.SELL, price="150", holders={"Ana": "5"}, operation_date=date(2024, 3, 1),
        ))

        assert Decimal(gain_row(db, sell.transaction_id).total_outlay_user_curr) == Decimal("250")

    def test_other_pairs_untouched(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(ticker="MSFT", price="50"))
        ledger_service.submit_transaction(USER_ID, make_request(ticker="AAPL", price="100"))

        [msft] = rows_for(db, ticker="MSFT")
        assert Decimal(msft.average_price_user_curr) == Decimal("50")


class TestTransactionIds:
    """Tests for transaction id allocation."""

    def test_interleaved_submissions_get_distinct_ids(self, db, db_engine):
        other = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
        try:
            # First request has taken its id but not committed yet
            reserved = SqlLedgerClient(db).open_transaction(USER_ID, "AAPL")

            msft = service_on(other).submit_transaction(USER_ID, make_request(ticker="MSFT"))

            assert msft.transaction_id != reserved
            result = service_on(other).delete_transaction(USER_ID, msft.transaction_id)
            assert result.pairs_recomputed == [("MSFT", "Ana")]
        finally:
            other.close()

    def test_ids_not_reused_after_deleting_latest(self, ledger_service):
        first = ledger_service.submit_transaction(USER_ID, make_request())
        ledger_service.delete_transaction(USER_ID, first.transaction_id)

        second = ledger_service.submit_transaction(USER_ID, make_request())

        assert second.transaction_id > first.transaction_id

    def test_delete_removes_header(self, db, ledger_service):
        result = ledger_service.submit_transaction(USER_ID, make_request())
        assert db.get(LedgerTransaction, result.transaction_id) is not None

        ledger_service.delete_transaction(USER_ID, result.transaction_id)

        assert db.get(LedgerTransaction, result.transaction_id) is None

    def test_duplicate_rows_for_one_holder_rejected(self, db, ledger_service):
        result = ledger_service.submit_transaction(USER_ID, make_request())
        [entry] = rows_for(db)

        db.add(LedgerEntry(
            transaction_id=result.transaction_id,
            user_id=USER_ID,
            ticker="MSFT",
            operation_date=entry.operation_date,
            person="Ana",
            category=TransactionCategory.BUY,
            buy_or_sell=1,
            operation_sign=1,
            shares_count=Decimal("1"),
            price_per_share_user_curr=Decimal("1"),
            effective_price_per_share_user_curr=Decimal("1"),
            total_outlay_user_curr=Decimal("1"),
        ))

        with pytest.raises(IntegrityError):
            db.flush()


class TestAtomicRewrite:
    """A failing pair rolls back every pair of the same write."""

    def test_failed_submit_writes_nothing(self, db, ledger_service, monkeypatch):
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", operation_date=date(2024, 2, 1))
        )
        before = computed_columns(rows_for(db)[0])
        headers = db.query(LedgerTransaction).count()
        fail_recompute_for(ledger_service, monkeypatch, "Ben")

        # Back-dated, so the recompute of Ana alone would change her existing row
        with pytest.raises(RecomputeError) as exc_info:
            ledger_service.submit_transaction(USER_ID, make_request(
                price="200", holders={"Ana": "10", "Ben": "10"}, operation_date=date(2024, 1, 1),
            ))

        assert exc_info.value.pairs == [("AAPL", "Ana"), ("AAPL", "Ben")]
        db.expire_all()
        assert db.query(LedgerEntry).count() == 1
        assert db.query(LedgerTransaction).count() == headers
        assert computed_columns(rows_for(db)[0]) == before

    def test_failed_delete_removes_nothing(self, db, ledger_service, monkeypatch):
        shared = ledger_service.submit_transaction(USER_ID, make_request(
            price="200", holders={"Ana": "5", "Ben": "5"}, operation_date=date(2024, 1, 1),
        ))
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", holders={"Ana": "5"}, operation_date=date(2024, 1, 5))
        )
        # Ana's later row averages both buys until the shared one is removed
        before = computed_columns(rows_for(db)[-1])
        assert before[0] == Decimal("150")
        fail_recompute_for(ledger_service, monkeypatch, "Ben")

        with pytest.raises(RecomputeError):
            ledger_service.delete_transaction(USER_ID, shared.transaction_id)

        db.expire_all()
        assert db.query(LedgerEntry).count() == 3
        assert db.get(LedgerTransaction, shared.transaction_id) is not None
        assert computed_columns(rows_for(db)[-1]) == before

    def test_locks_released_after_failure(self, ledger_service, monkeypatch):
        fail_recompute_for(ledger_service, monkeypatch, "Ben")
        with pytest.raises(RecomputeError):
            ledger_service.submit_transaction(USER_ID, make_request(holders={"Ana": "1", "Ben": "1"}))

        result = ledger_service.submit_transaction(USER_ID, make_request(holders={"Ana": "1"}))

        assert result.rows_created == 1


class TestDelete:
    """Tests for delete_transaction()."""

    def test_delete_removes_all_rows(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(operation_date=date(2024, 1, 1)))
        sell = ledger_service.submit_transaction(USER_ID, make_request(
            side=TradeSide.SELL, price="120", holders={"Ana": "4"}, operation_date=date(2024, 2, 1),
        ))

        result = ledger_service.delete_transaction(USER_ID, sell.transaction_id)

        assert result.rows_deleted == 2
        assert result.pairs_recomputed == [("AAPL", "Ana")]
        assert len(rows_for(db)) == 1

    def test_delete_recomputes_later_rows(self, db, ledger_service):
        first = ledger_service.submit_transaction(
            USER_ID, make_request(price="100", operation_date=date(2024, 1, 1))
        )
        ledger_service.submit_transaction(
            USER_ID, make_request(price="200", operation_date=date(2024, 2, 1))
        )

        ledger_service.delete_transaction(USER_ID, first.transaction_id)

        [remaining] = rows_for(db)
        assert Decimal(remaining.average_price_user_curr) == Decimal("200")
        assert Decimal(remaining.cumulative_shares) == Decimal("10")

    def test_unknown_transaction(self, ledger_service):
        with pytest.raises(TransactionNotFoundError):
            ledger_service.delete_transaction(USER_ID, 999)

    def test_other_users_transaction_not_found(self, ledger_service):
        result = ledger_service.submit_transaction("owner", make_request())

        with pytest.raises(TransactionNotFoundError):
            ledger_service.delete_transaction(USER_ID, result.transaction_id)


class TestExplicitRecompute:
    """Tests for recompute()."""

    def test_repairs_stale_columns(self, db, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(price="100"))
        [entry] = rows_for(db)
        entry.average_price_user_curr = Decimal("1")
        db.commit()

        pairs = ledger_service.recompute(USER_ID, "aapl")

        assert pairs == [("AAPL", "Ana")]
        assert Decimal(rows_for(db)[0].average_price_user_curr) == Decimal("100")

    def test_single_person(self, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(holders={"Ana": "1", "Ben": "1"}))

        assert ledger_service.recompute(USER_ID, "AAPL", person="Ben") == [("AAPL", "Ben")]

    def test_nothing_to_recompute(self, ledger_service):
        assert ledger_service.recompute(USER_ID, "AAPL") == []


class TestListTransactions:
    """Tests for list_transactions()."""

    def test_newest_first(self, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(operation_date=date(2024, 1, 1)))
        ledger_service.submit_transaction(USER_ID, make_request(operation_date=date(2024, 3, 1)))

        entries, _ = ledger_service.list_transactions(USER_ID)

        assert [e.operation_date for e in entries] == [date(2024, 3, 1), date(2024, 1, 1)]

    def test_filters(self, ledger_service):
        ledger_service.submit_transaction(USER_ID, make_request(ticker="AAPL", operation_date=date(2024, 1, 1)))
        ledger_service.submit_transaction(USER_ID, make_request(ticker="MSFT", operation_date=date(2024, 2, 1)))
        ledger_service.submit_transaction(
            USER_ID, make_request(ticker="MSFT", holders={"Ben": "1"}, operation_date=date(2024, 3, 1))
        )

        by_ticker, _ = ledger_service.list_transactions(USER_ID, tickers=["msft"])
        by_person, _ = ledger_service.list_transactions(USER_ID, people=["Ben"])
        by_date, _ = ledger_service.list_transactions(
            USER_ID, start_date=date(2024, 1, 15), end_date=date(2024, 2, 15)
        )

        assert len(by_ticker) == 2
        assert [e.person for e in by_person] == ["Ben"]
        assert [e.ticker for e in by_date] == ["MSFT"]

    def test_totals_exclude_synthetic_rows(self, ledger_service):
        ledger_service.submit_transaction(
            USER_ID, make_request(price="100", fees="5", operation_date=date(2024, 1, 1))
        )
        ledger_service.submit_transaction(USER_ID, make_request(
            side=TradeSide.SELL, price="120", holders={"Ana": "4"}, fees="2", taxes="1",
            operation_date=date(2024, 2, 1),
        ))

        entries, totals = ledger_service.list_transactions(USER_ID)

        assert len(entries) == 3
        assert totals.shares_count == Decimal("6")
        assert totals.total_outlay == Decimal("528")
        assert totals.fees == Decimal("7")
        assert totals.taxes == Decimal("1")
        assert LedgerService.realized_total(entries) == Decimal("75")

    def test_users_are_isolated(self, ledger_service):
        ledger_service.submit_transaction("someone-else", make_request())

        entries, totals = ledger_service.list_transactions(USER_ID)

        assert entries == []
        assert totals.total_outlay == Decimal("0")

    def test_invalid_date_range(self, ledger_service):
        with pytest.raises(InvalidDateRangeError):
            ledger_service.list_transactions(
                USER_ID, start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)
            )
