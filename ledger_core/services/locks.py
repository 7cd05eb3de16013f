"""
Per-account exclusive sections.

Every mutation of an account (balance update, entry append) runs while
holding that account's lock, so two concurrent withdrawals cannot both
pass the balance check. Operations spanning several accounts acquire
all of their locks in one sorted order, which rules out deadlock
between two transfers running in opposite directions.
"""

import threading
from contextlib import contextmanager


def account_key(account_id: int) -> str:
    return f"account:{account_id:012d}"


def bill_key(bill_id: int) -> str:
    return f"bill:{bill_id:012d}"


def request_key(idempotency_key: str) -> str:
    return f"request:{idempotency_key}"


class AccountLocks:
    """Registry of named locks, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: str):
        """
        Hold every named lock for the duration of the block.

        Duplicate keys are collapsed. Keys are zero-padded so plain
        string order matches numeric id order.
        """
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
