# backend/app/services/ledger/locks.py
"""
Per-(user, ticker, person) mutexes for the recompute-and-write pass.

One registry is created per application (see main.py lifespan) and handed
to every LedgerService. Several pairs are always locked in sorted order so
two submissions touching overlapping pairs cannot deadlock.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from app.services.exceptions import RecomputeError

logger = logging.getLogger(__name__)

PairKey = tuple[str, str, str]  # (user_id, ticker, person)

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


class PairLockRegistry:
    """Hands out one lock per (user, ticker, person) key."""

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[PairKey, threading.Lock] = {}

    def lock_for(self, key: PairKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[PairKey]) -> Iterator[None]:
        """
        Hold the locks of all keys for the duration of the block.

        Raises:
            RecomputeError: If a lock cannot be acquired within the timeout
        """
        ordered = sorted(set(keys))
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self.lock_for(key)
                if not lock.acquire(timeout=self._timeout):
                    logger.error(f"Timed out waiting for ledger lock {key}")
                    raise RecomputeError(
                        [(t, p) for _, t, p in ordered],
                        f"another write to {key[1]}/{key[2]} is still running",
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
