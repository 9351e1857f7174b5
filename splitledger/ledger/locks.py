"""
Per-Group Write Serialization

Writes to one group are applied one at a time; different groups never
wait on each other. Reads take the same lock only long enough to copy
the group's expenses and settlement records, so a read never mixes the
before and after of a write.

The lock is re-entrant: the settlement tracker holds it while asking
the expense ledger for the same group's expenses.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class GroupLockRegistry:
    """Lazily creates one RLock per group id."""

    def __init__(self):
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, group_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(group_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[group_id] = lock
            return lock

    @contextmanager
    def hold(self, group_id: str) -> Iterator[None]:
        """Hold the group's lock for the duration of the block."""
        lock = self.lock_for(group_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
