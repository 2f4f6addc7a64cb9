from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text

from ..errors import TransientStoreError


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((user_a, user_b)))


def pair_key(user_a: str, user_b: str) -> str:
    a, b = canonical_pair(user_a, user_b)
    return f"{a}:{b}"


def advisory_lock_id(user_a: str, user_b: str, group_id: str) -> int:
    digest = hashlib.blake2b(f"{pair_key(user_a, user_b)}|{group_id}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class PairLockRegistry:
    """In-process mutual exclusion keyed by (unordered pair, group).

    Entries are reference counted and dropped once no holder or waiter remains.
    """

    def __init__(self, timeout_seconds: float = 5.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock, refs = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, refs + 1)
            return lock

    def _release(self, key: str) -> None:
        with self._guard:
            lock, refs = self._locks[key]
            if refs <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, refs - 1)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, user_a: str, user_b: str, group_id: str) -> Iterator[None]:
        with self._hold(f"pair:{pair_key(user_a, user_b)}|{group_id}"):
            yield

    @contextmanager
    def hold_sender(self, user_id: str) -> Iterator[None]:
        """Serializes one sender's submissions so the daily quota is read and spent atomically.

        Always taken before the pair lock, never while holding one.
        """
        with self._hold(f"sender:{user_id}"):
            yield

    @contextmanager
    def _hold(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        acquired = lock.acquire(timeout=self.timeout_seconds)
        if not acquired:
            self._release(key)
            raise TransientStoreError("Another request for these users is still in progress. Check your interests before retrying")
        try:
            yield
        finally:
            lock.release()
            self._release(key)


def acquire_store_pair_lock(db, user_a: str, user_b: str, group_id: str, statement_timeout_ms: int) -> None:
    """Cross-process equivalent of PairLockRegistry, released at commit or rollback."""
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {int(statement_timeout_ms)}"))
    db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": advisory_lock_id(user_a, user_b, group_id)})
