"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

Translates raw TCP bytes into structured HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest     (RequestParser)            │
    │ response.py      HTTPResponse → bytes    (ResponseBuilder, helpers) │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    │ router.py        (method, path) → handler, 404/405 policy           │
    └─────────────────────────────────────────────────────────────────────┘

The router depends on the error taxonomy, which depends on HTTPStatus, so
it is imported from its own module:

    from todoserver.http.router import Router
=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,             # 200 OK
    created,        # 201 Created
    no_content,     # 204 No Content
    error_response,
    internal_error,
)
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "no_content",
    "error_response",
    "internal_error",

    "HTTPStatus",
]
