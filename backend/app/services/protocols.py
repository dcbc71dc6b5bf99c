# backend/app/services/protocols.py
"""
Protocol interfaces for the collaborators the ledger and valuation
services depend on.

Every service receives its collaborators through the constructor. The
SQLAlchemy-backed implementations live next to the services that use them;
tests substitute in-memory fakes without inheriting from anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models import LedgerEntry
    from app.services.market_data.base import PriceBar


class LedgerClient(Protocol):
    """Ledger store: query by filter, append, delete, atomic unit of work."""

    def query_entries(
        self,
        user_id: str,
        tickers: Sequence[str] | None = None,
        people: Sequence[str] | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[LedgerEntry]:
        """Return matching rows in no particular order."""
        ...

    def entries_for_transaction(self, user_id: str, transaction_id: int) -> list[LedgerEntry]:
        ...

    def add_entries(self, entries: Iterable[LedgerEntry]) -> None:
        ...

    def delete_entries(self, entries: Iterable[LedgerEntry]) -> None:
        ...

    def open_transaction(self, user_id: str, ticker: str) -> int:
        """Allocate the id of a new submission."""
        ...

    def drop_transaction(self, transaction_id: int) -> None:
        ...

    def distinct_tickers(self, user_id: str | None = None) -> list[str]:
        ...

    def atomic(self) -> AbstractContextManager[None]:
        """Commit on success, roll back everything on error."""
        ...


class PriceSource(Protocol):
    """Stored daily closes/dividends keyed by symbol."""

    def get_series(
        self,
        symbols: Sequence[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, list[PriceBar]]:
        """Bars per symbol within [start_date, end_date], ascending by date."""
        ...

    def get_latest_close(
        self,
        symbol: str,
        on_or_before: date | None = None,
    ) -> tuple[date, Decimal] | None:
        ...


class PreferenceStore(Protocol):
    """User preference lookup: user_id -> display currency."""

    def get_display_currency(self, user_id: str) -> str | None:
        ...


class AssetDirectory(Protocol):
    """Ticker -> trading currency."""

    def get_currency(self, ticker: str) -> str | None:
        ...

    def get_currencies(self, tickers: Iterable[str]) -> dict[str, str]:
        ...

    def register(self, ticker: str, currency: str, name: str | None = None, sector: str | None = None) -> object:
        """Record a ticker's trading currency if it is not known yet."""
        ...
