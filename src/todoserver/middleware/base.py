"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the router like layers of an onion. The first one added
is the outermost:

    pipeline.add(LoggingMiddleware())     # outermost: sees final status
    pipeline.add(MetricsMiddleware())     # counts every request
    handler = pipeline.wrap(router)

    ┌────────────────────────────────────────────────────────────┐
    │  LoggingMiddleware                                         │
    │    ┌────────────────────────────────────────────────────┐  │
    │    │  MetricsMiddleware                                 │  │
    │    │    ┌────────────────────────────────────────────┐  │  │
    │    │    │  Router → handler                          │  │  │
    │    │    └────────────────────────────────────────────┘  │  │
    │    └────────────────────────────────────────────────────┘  │
    └────────────────────────────────────────────────────────────┘

Requests flow inward, responses flow back outward. A middleware sees the
HTTPResponse returned by everything inside it, including its status.
=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.headers["X-Processed-By"] = "MyMiddleware"
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request, normally by calling next(request).

        Returns:
            The response from next(), possibly decorated.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """Ordered middleware list that wraps a final handler."""

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware; first added = outermost."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around `handler`.

        Given [MW1, MW2] the result calls MW1 → MW2 → handler, so wrapping
        happens in reverse order.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)
