# backend/app/services/ledger/repository.py
"""
SQLAlchemy implementation of the LedgerClient protocol.

One instance wraps one request's Session. Query failures are re-raised as
LedgerQueryError so callers never mistake a broken store for an empty
portfolio.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import LedgerEntry, LedgerTransaction
from app.services.exceptions import LedgerQueryError

logger = logging.getLogger(__name__)


class SqlLedgerClient:
    """Ledger store backed by the ledger_entries table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def query_entries(
            self,
            user_id: str,
            tickers: Sequence[str] | None = None,
            people: Sequence[str] | None = None,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> list[LedgerEntry]:
        query = select(LedgerEntry).where(LedgerEntry.user_id == user_id)

        if tickers:
            query = query.where(LedgerEntry.ticker.in_([t.upper() for t in tickers]))
        if people:
            query = query.where(LedgerEntry.person.in_(list(people)))
        if start_date is not None:
            query = query.where(LedgerEntry.operation_date >= start_date)
        if end_date is not None:
            query = query.where(LedgerEntry.operation_date <= end_date)

        try:
            return list(self._db.scalars(query).all())
        except SQLAlchemyError as e:
            logger.error(f"Ledger query failed for user {user_id}: {e}")
            raise LedgerQueryError(str(e)) from e

    def entries_for_transaction(self, user_id: str, transaction_id: int) -> list[LedgerEntry]:
        query = select(LedgerEntry).where(
            LedgerEntry.user_id == user_id,
            LedgerEntry.transaction_id == transaction_id,
        )
        try:
            return list(self._db.scalars(query).all())
        except SQLAlchemyError as e:
            raise LedgerQueryError(str(e)) from e

    def add_entries(self, entries: Iterable[LedgerEntry]) -> None:
        self._db.add_all(list(entries))
        # Assign primary keys so new rows sort deterministically in the replay
        self._db.flush()

    def delete_entries(self, entries: Iterable[LedgerEntry]) -> None:
        for entry in entries:
            self._db.delete(entry)
        self._db.flush()

    def open_transaction(self, user_id: str, ticker: str) -> int:
        """
        Insert the header row of a new submission and return its id.

        The id comes from the ledger_transactions identity column, assigned
        by the database at flush time.
        """
        header = LedgerTransaction(user_id=user_id, ticker=ticker)
        self._db.add(header)
        self._db.flush()
        return header.id

    def drop_transaction(self, transaction_id: int) -> None:
        """Delete the header row once its entries are gone."""
        self._db.execute(delete(LedgerTransaction).where(LedgerTransaction.id == transaction_id))

    def distinct_tickers(self, user_id: str | None = None) -> list[str]:
        query = select(LedgerEntry.ticker).distinct()
        if user_id is not None:
            query = query.where(LedgerEntry.user_id == user_id)
        try:
            return sorted(self._db.scalars(query).all())
        except SQLAlchemyError as e:
            raise LedgerQueryError(str(e)) from e

    def distinct_users(self) -> list[str]:
        try:
            return sorted(self._db.scalars(select(LedgerEntry.user_id).distinct()).all())
        except SQLAlchemyError as e:
            raise LedgerQueryError(str(e)) from e

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Commit the session on success; roll everything back on error."""
        try:
            yield
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
