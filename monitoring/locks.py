"""
In-process mutual exclusion keyed by workspace or crisis id.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, List

from .errors import CrisisConflictError


class KeyedLocks:
    """One lock per key, alive only while some thread holds or waits for it."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[Hashable, List] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable, **context):
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            CrisisConflictError: If the lock is not acquired within ``timeout`` seconds
        """
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self.timeout):
                raise CrisisConflictError(
                    f"Timed out after {self.timeout}s waiting for exclusive access",
                    **context,
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)
