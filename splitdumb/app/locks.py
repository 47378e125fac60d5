"""
locks.py — Per-group readers/writer locks for the ledger.

Every mutation of a group's ledger (append expense, replace expense, remove
expense, record settlement, toggle simplify) runs under that group's write
lock; every balance/settlement read runs under its read lock. Different
groups never share a lock, so they proceed fully in parallel.

Waits are bounded. A caller that cannot acquire the lock within
LEDGER_LOCK_TIMEOUT_SECONDS gets AppError(LOCK_CONTENTION, 503) and is
expected to retry.

Writers take priority: once a writer is waiting, new readers queue behind
it, so a steady stream of reads cannot starve mutations.

The registry is in-process. Across processes, write paths additionally lock
the group row inside the DB transaction (see ledger_service.lock_group).
"""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator

from splitdumb.app.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)


class ReadWriteLock:

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self, timeout: float) -> bool:
        with self._cond:
            acquired = self._cond.wait_for(
                lambda: not self._writer and self._writers_waiting == 0,
                timeout,
            )
            if acquired:
                self._readers += 1
            return acquired

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout: float) -> bool:
        with self._cond:
            self._writers_waiting += 1
            try:
                acquired = self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0,
                    timeout,
                )
            finally:
                self._writers_waiting -= 1
            if acquired:
                self._writer = True
            else:
                # Readers parked behind this writer may go now.
                self._cond.notify_all()
            return acquired

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class GroupLockRegistry:
    """
    Lazily creates one ReadWriteLock per group id.

    The map holds its locks weakly. A lock lives only while some request
    holds or waits on it, so ids of deleted or nonexistent groups do not
    accumulate, and every caller that overlaps in time gets the same lock.

    Follows the Flask extension pattern: create at import time, bind the
    timeout from config in init_app().
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._locks: weakref.WeakValueDictionary[int, ReadWriteLock] = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def init_app(self, app) -> None:
        self.timeout = float(app.config.get("LEDGER_LOCK_TIMEOUT_SECONDS", self.timeout))
        app.extensions["ledger_locks"] = self

    def lock_for(self, group_id: int) -> ReadWriteLock:
        """Returns the group's lock. Callers keep the reference while they use it."""
        with self._guard:
            lock = self._locks.get(group_id)
            if lock is None:
                lock = ReadWriteLock()
                self._locks[group_id] = lock
            return lock

    @contextmanager
    def read(self, group_id: int) -> Iterator[None]:
        lock = self.lock_for(group_id)
        if not lock.acquire_read(self.timeout):
            self._contention(group_id, "read")
        try:
            yield
        finally:
            lock.release_read()

    @contextmanager
    def write(self, group_id: int) -> Iterator[None]:
        lock = self.lock_for(group_id)
        if not lock.acquire_write(self.timeout):
            self._contention(group_id, "write")
        try:
            yield
        finally:
            lock.release_write()

    def _contention(self, group_id: int, mode: str) -> None:
        logger.warning(
            "Timed out after %.2fs waiting for %s lock on group %s",
            self.timeout, mode, group_id,
        )
        raise AppError(
            ErrorCode.LOCK_CONTENTION,
            f"Group {group_id} is busy. Please retry the request.",
            503,
        )
