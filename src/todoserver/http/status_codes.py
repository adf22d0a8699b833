"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service can answer with, plus their reason phrases
for the status line ("HTTP/1.1 404 Not Found").

    ┌───────────┬──────────────────────────────────────────────────────────┐
    │  Code     │  Where it comes from                                     │
    ├───────────┼──────────────────────────────────────────────────────────┤
    │  200      │  reads, /healthz, /version, /metrics, PUT                │
    │  201      │  POST /todos                                             │
    │  204      │  DELETE /todos/{id}                                      │
    │  400      │  bad id, bad body, malformed HTTP                        │
    │  404      │  absent todo, unknown path                               │
    │  405      │  known path, wrong method                                │
    │  408      │  client too slow to send its request                     │
    │  413      │  request larger than max_request_size                    │
    │  500      │  unexpected handler failure                              │
    │  501      │  Transfer-Encoding on a request                          │
    │  505      │  HTTP version other than 1.0 / 1.1                       │
    └───────────┴──────────────────────────────────────────────────────────┘
=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:
        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def allows_body(self) -> bool:
        """204 and 304 responses must not carry a body (RFC 7230 §3.3.3)."""
        return self not in (204, 304)


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
