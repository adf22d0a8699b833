"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses per RFC 7230.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 201 Created\r\n                ← status line            │
    │    Content-Type: application/json\r\n      ← headers                │
    │    Content-Length: 43\r\n                                           │
    │    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n                          │
    │    Server: TodoServer/1.0.0\r\n                                     │
    │    X-Request-ID: 3f2a...\r\n                                        │
    │    \r\n                                    ← separator              │
    │    {"id":1,"title":"x","completed":false}\n ← body                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BODY CONVENTIONS
=============================================================================

    ┌───────────────────┬──────────────────────────────┬─────────────────────┐
    │  Kind             │  Content-Type                │  Body               │
    ├───────────────────┼──────────────────────────────┼─────────────────────┤
    │  JSON data        │  application/json            │  compact JSON + \n  │
    │  metrics          │  application/json            │  2-space indented   │
    │  errors           │  text/plain; charset=utf-8   │  message + \n       │
    │  health/version   │  text/plain; charset=utf-8   │  raw text           │
    │  204 No Content   │  (none)                      │  empty, no length   │
    └───────────────────┴──────────────────────────────┴─────────────────────┘

Usage:
    response = (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .json(todo.to_dict())
        .build())
=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterable, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Handlers return one of these; middleware may add headers on the way
    out; the connection serializes it with to_bytes().
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """"HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        return len(self.body)

    def to_bytes(self, server_name: str = "TodoServer") -> bytes:
        """
        Serialize the response for socket.sendall().

        Date and Server are added when missing. Content-Length is added
        for every status that may carry a body; a 204 is sent with
        neither body nor Content-Length.
        """
        response_headers = dict(self.headers)
        body = self.body

        if self.status.allows_body:
            if "Content-Length" not in response_headers:
                response_headers["Content-Length"] = str(len(body))
        else:
            body = b""
            response_headers.pop("Content-Length", None)
            response_headers.pop("Content-Type", None)

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Each method returns self except build():

        ResponseBuilder().status(HTTPStatus.OK).json(data).build()
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def text(self, text: str, content_type: str = TEXT_CONTENT_TYPE) -> "ResponseBuilder":
        """Set a plain text body."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Set a JSON body.

        Compact output ends with a newline, like a streaming JSON encoder.
        Pretty output (2-space indent) has no trailing newline.

        Args:
            data: Any JSON-serializable value.
            pretty: Indent for human readers.
        """
        if pretty:
            encoded = json.dumps(data, indent=2, ensure_ascii=False)
        else:
            encoded = json.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n"
        self._body = encoded.encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always GMT.

    Example: Sat, 17 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(todo.to_dict())
#     return created(todo.to_dict())
#     return no_content()
#     return error_response(HTTPStatus.NOT_FOUND, "not found")
#
# =============================================================================

def ok(body: Union[str, dict, list] = "", pretty: bool = False) -> HTTPResponse:
    """
    200 OK.

    dict/list bodies become JSON, strings become plain text.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, (dict, list)):
        builder.json(body, pretty=pretty)
    else:
        builder.text(body)
    return builder.build()


def created(body: Union[dict, list]) -> HTTPResponse:
    """201 Created with a JSON body."""
    return ResponseBuilder().status(HTTPStatus.CREATED).json(body).build()


def no_content() -> HTTPResponse:
    """204 No Content: no body, no Content-Length."""
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def error_response(
    status: HTTPStatus,
    message: str,
    allowed: Optional[Iterable[str]] = None
) -> HTTPResponse:
    """
    Plain-text error response.

    The body is the message followed by a newline. With `allowed`, an
    Allow header lists the methods the path supports (RFC 7231 §6.5.5).
    """
    builder = (ResponseBuilder()
        .status(status)
        .text(message + "\n")
        .header("X-Content-Type-Options", "nosniff"))
    if allowed is not None:
        builder.header("Allow", ", ".join(allowed))
    return builder.build()


def internal_error() -> HTTPResponse:
    """500 with a generic body; details only go to the log."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "internal server error")
