"""
=============================================================================
READ/WRITE LOCK
=============================================================================

A shared-read / exclusive-write lock built on threading.Condition.

The standard library only ships exclusive locks. A plain Lock would make
every GET wait behind every other GET, so the store uses this instead:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SHARED-READ / EXCLUSIVE-WRITE                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Held by        │ New reader │ New writer                          │
    │   ───────────────┼────────────┼────────────                          │
    │   nobody         │  enters    │  enters                             │
    │   readers        │  enters*   │  waits                              │
    │   a writer       │  waits     │  waits                              │
    │                                                                      │
    │   * unless a writer is already waiting (writer preference)          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Writer preference keeps a steady stream of list/get requests from starving
create/update/delete.

The lock is NOT reentrant. A thread holding the read side must not ask for
the write side.
=============================================================================
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """
    Shared-read / exclusive-write lock.

    Usage:
        lock = ReadWriteLock()

        with lock.read():
            ...  # many threads at once

        with lock.write():
            ...  # exactly one thread, no readers
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0              # Threads currently holding the read side
        self._writer = False           # True while a writer holds the lock
        self._writers_waiting = 0      # Writers blocked in acquire_write()

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() without matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    # =========================================================================
    # WRITE SIDE
    # =========================================================================

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() without matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    # =========================================================================
    # CONTEXT MANAGERS
    # =========================================================================

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the shared (read) side for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the exclusive (write) side for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of threads currently holding the read side."""
        with self._cond:
            return self._readers

    @property
    def write_locked(self) -> bool:
        """True while a writer holds the lock."""
        with self._cond:
            return self._writer
