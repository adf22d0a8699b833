"""
Middleware wrapped around the router.

    logging(metrics(router))

LoggingMiddleware is outermost so the access record reflects the final
status; MetricsMiddleware counts every request before routing.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog
from .metrics import MetricsMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
    "MetricsMiddleware",
]
