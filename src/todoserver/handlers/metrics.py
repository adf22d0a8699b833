"""
Operational counters endpoint.

    GET /metrics → 200
    {
      "requests": 42,
      "total_todos": 3
    }
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok
from ..http.router import Router
from ..metrics import MetricsCollector
from ..store import TodoStore


class MetricsHandler:
    """Serves a MetricsSnapshot as indented JSON."""

    def __init__(self, metrics: MetricsCollector, store: TodoStore):
        self.metrics = metrics
        self.store = store

    def register(self, router: Router) -> None:
        router.add_route("/metrics", self.snapshot, method="GET")

    def snapshot(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.metrics.snapshot(self.store).to_dict(), pretty=True)
