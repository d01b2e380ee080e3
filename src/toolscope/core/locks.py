"""Keyed in-process locks.

Writes are serialized per target file and per profile. Keys are plain
strings (a resolved path, or ``profile:<id>``). ``hold`` acquires several
keys at once in one global order: every ``profile:`` key first, then the
remaining keys sorted. A thread that already holds a profile key (a pull,
for instance) and then commits a change naming that profile plus some file
paths therefore asks for keys in the same order as any other commit on the
profile, and the two cannot deadlock. Locks are re-entrant.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

PROFILE_PREFIX = "profile:"


def _acquire_order(key: str) -> tuple[int, str]:
    return (0 if key.startswith(PROFILE_PREFIX) else 1, key)


def ordered_keys(keys: Iterable[str]) -> list[str]:
    """The order in which ``hold`` acquires ``keys``."""
    return sorted(set(keys), key=_acquire_order)


class KeyedLocks:
    """A lazily populated map of key to ``threading.RLock``."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block."""
        acquired: list[threading.RLock] = []
        try:
            for key in ordered_keys(keys):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def profile_key(profile_id: str) -> str:
    return f"{PROFILE_PREFIX}{profile_id}"
