"""
Process-wide request counters.

MetricsCollector is constructed once per server and passed to whoever needs
it (the metrics middleware and the /metrics handler). Tests build their own
instances, so no counter leaks between tests.

The request counter has its own lock, independent from the store's: it is
bumped on every request, including ones that never touch the store.
"""

import threading
from dataclasses import dataclass

from .store import TodoStore


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time view of the counters."""

    requests: int
    total_todos: int

    def to_dict(self) -> dict:
        return {
            "requests": self.requests,
            "total_todos": self.total_todos,
        }


class MetricsCollector:
    """
    Thread-safe request counter.

    total_todos is not tracked here. It is read from the store when a
    snapshot is taken, so it can never drift from the real store size.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests = 0

    def increment_requests(self) -> None:
        """Count one inbound request."""
        with self._lock:
            self._requests += 1

    @property
    def requests(self) -> int:
        with self._lock:
            return self._requests

    def snapshot(self, store: TodoStore) -> MetricsSnapshot:
        """
        Combine the request counter with the current store size.

        The two values are read under separate locks. A create racing with
        the snapshot may or may not be counted; that is acceptable for an
        operational metric.
        """
        requests = self.requests
        return MetricsSnapshot(requests=requests, total_todos=len(store))
