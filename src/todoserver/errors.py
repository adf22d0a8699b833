"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every request-level failure maps to exactly one HTTP status:

    ┌──────────────────────────┬────────┬──────────────────────────────────┐
    │  Exception               │ Status │ Raised when                      │
    ├──────────────────────────┼────────┼──────────────────────────────────┤
    │  ValidationError         │  400   │ bad id, bad body, empty title    │
    │  NotFoundError           │  404   │ id absent / unknown path         │
    │  MethodNotAllowedError   │  405   │ known path, wrong method         │
    │  StartupError            │   -    │ listener cannot start (fatal)    │
    └──────────────────────────┴────────┴──────────────────────────────────┘

Handlers raise these; the router turns them into plain-text responses.
None of them is retried. StartupError never reaches a client: it ends the
process.
=============================================================================
"""

from typing import Iterable, List, Optional

from .http.status_codes import HTTPStatus


class TodoServerError(Exception):
    """
    Base class for errors that carry an HTTP status.

    Attributes:
        status_code: Status to answer with.
        message: Short plain-text description sent as the response body.
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message: str = "internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TodoServerError):
    """Malformed id, undecodable body or empty title."""

    status_code = HTTPStatus.BAD_REQUEST
    default_message = "invalid payload"


class NotFoundError(TodoServerError):
    """The operation targets an absent id or an unknown path."""

    status_code = HTTPStatus.NOT_FOUND
    default_message = "not found"


class MethodNotAllowedError(TodoServerError):
    """The path exists but does not support the request method."""

    status_code = HTTPStatus.METHOD_NOT_ALLOWED
    default_message = "method not allowed"

    def __init__(self, allowed: Iterable[str], message: Optional[str] = None):
        self.allowed: List[str] = sorted(allowed)
        super().__init__(message)


class StartupError(TodoServerError):
    """The listening socket could not be bound or stopped unexpectedly."""
