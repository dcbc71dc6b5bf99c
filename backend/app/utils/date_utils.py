# backend/app/utils/date_utils.py
"""
Date helpers shared by the ledger and valuation services.

Usage:
    from app.utils.date_utils import iter_days, date_to_epoch, epoch_to_date
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """
    Yield every calendar day from start_date to end_date, both inclusive.

    Example:
        >>> list(iter_days(date(2024, 1, 30), date(2024, 2, 1)))
        [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)]
    """
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def date_to_epoch(d: date) -> int:
    """Seconds since 1970-01-01 UTC at midnight of d."""
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


def epoch_to_date(seconds: float) -> date:
    """Calendar date (UTC) of an epoch timestamp."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
