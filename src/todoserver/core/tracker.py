"""
=============================================================================
IN-FLIGHT REQUEST TRACKER
=============================================================================

Counts requests that are currently being processed so graceful shutdown
can wait for them, but never longer than the grace period:

    shutdown()
        │
        ├──► stop accepting
        │
        └──► tracker.wait_idle(timeout=5.0)
                 │
                 ├── active reaches 0      → True  (drained)
                 └── deadline passes first → False (abandon the rest)
=============================================================================
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional


class RequestTracker:
    """Thread-safe counter of in-flight requests."""

    def __init__(self):
        self._cond = threading.Condition()
        self._active = 0
        self._total = 0

    def begin(self) -> None:
        """Mark a request as started."""
        with self._cond:
            self._active += 1
            self._total += 1

    def end(self) -> None:
        """Mark a request as finished and wake waiters if idle."""
        with self._cond:
            if self._active <= 0:
                raise RuntimeError("end() without matching begin()")
            self._active -= 1
            if self._active == 0:
                self._cond.notify_all()

    @contextmanager
    def track(self) -> Iterator[None]:
        """Track the request handled inside the block."""
        self.begin()
        try:
            yield
        finally:
            self.end()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no request is in flight or the timeout expires.

        Args:
            timeout: Maximum seconds to wait. None waits forever.

        Returns:
            True if the tracker became idle, False if the deadline passed.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._active:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    @property
    def total(self) -> int:
        """Requests started since creation."""
        with self._cond:
            return self._total
