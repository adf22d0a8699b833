"""Request counting middleware."""

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..metrics import MetricsCollector


class MetricsMiddleware(Middleware):
    """
    Bumps the request counter, then delegates.

    The counter is incremented before the handler runs, so every request
    that enters the chain is counted whatever its outcome (404, 405, 500).
    """

    def __init__(self, metrics: MetricsCollector):
        self.metrics = metrics

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        self.metrics.increment_requests()
        return next(request)
