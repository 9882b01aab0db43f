"""Multi-reader / single-writer lock for the shared experience store."""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import LockTimeoutError


class ReadWriteLock:
    """Reader-writer lock with writer preference.

    Any number of readers may hold the lock together. A writer holds it
    exclusively. Once a writer is waiting, new readers queue behind it so
    a steady stream of reads cannot starve appends.

    The lock is not reentrant: a thread holding the read side must not
    try to take the write side.
    """

    def __init__(self, timeout_s: Optional[float] = None):
        """Initialize the lock.

        Args:
            timeout_s: Default acquisition timeout. None waits forever.
        """
        self.timeout_s = timeout_s
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def _deadline(self, timeout_s: Optional[float]) -> Optional[float]:
        timeout = self.timeout_s if timeout_s is None else timeout_s
        if timeout is None:
            return None
        return time.monotonic() + timeout

    def _wait(self, deadline: Optional[float], side: str) -> None:
        if deadline is None:
            self._cond.wait()
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0 or not self._cond.wait(remaining):
            if time.monotonic() >= deadline:
                raise LockTimeoutError(f"Timed out acquiring {side} lock")

    def acquire_read(self, timeout_s: Optional[float] = None) -> None:
        deadline = self._deadline(timeout_s)
        with self._cond:
            while self._writer or self._writers_waiting:
                self._wait(deadline, "read")
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read called without a held read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout_s: Optional[float] = None) -> None:
        deadline = self._deadline(timeout_s)
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._wait(deadline, "write")
            except LockTimeoutError:
                self._writers_waiting -= 1
                # queued readers were blocked on this writer
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write called without a held write lock")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self, timeout_s: Optional[float] = None) -> Iterator[None]:
        """Hold the shared side for the duration of the block."""
        self.acquire_read(timeout_s)
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self, timeout_s: Optional[float] = None) -> Iterator[None]:
        """Hold the exclusive side for the duration of the block."""
        self.acquire_write(timeout_s)
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        with self._cond:
            return self._readers

    @property
    def write_locked(self) -> bool:
        with self._cond:
            return self._writer
