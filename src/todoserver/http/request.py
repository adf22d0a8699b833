"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230 message syntax).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    PUT /todos/1 HTTP/1.1\r\n             ← request line             │
    │    Host: localhost:8080\r\n              ← headers                  │
    │    Content-Type: application/json\r\n                               │
    │    Content-Length: 35\r\n                                           │
    │    \r\n                                  ← separator                │
    │    {"title": "y", "completed": true}     ← body                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Parse failures raise HTTPParseError carrying the status to answer with:

    400 Bad Request                 malformed request line / headers
    413 Payload Too Large           request exceeds max_request_size
    501 Not Implemented             any Transfer-Encoding (chunked bodies)
    505 HTTP Version Not Supported  anything but HTTP/1.0 and HTTP/1.1

The method itself is NOT validated here. Any syntactically valid token
reaches the router, which answers 405 for methods a path does not support
(and counts the request like any other).
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import urlparse, unquote
import re
import json


_DECODER = json.JSONDecoder()


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method:         HTTP method, uppercase (GET, POST, ...)
        path:           Request path without query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        body:           Raw request body bytes
        path_params:    Parameters extracted by the router ({"id": "42"})
        client_address: (ip, port) of the client
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    # Router-injected parameters
    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    _body_json: Optional[Any] = field(default=None, repr=False)
    _body_parsed: bool = field(default=False, repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def has_body(self) -> bool:
        """True if the body contains anything besides whitespace."""
        return bool(self.body.strip())

    @property
    def json(self) -> Any:
        """
        Parse the request body as JSON.

        Parsed once and cached. An empty body yields None, exactly like a
        literal `null` body; use has_body to tell them apart.

        Only the first JSON value is decoded; anything after it is ignored:
            b'{"title": "a"} {"x": 1}'  →  {"title": "a"}

        Raises:
            HTTPParseError: If the body does not start with valid UTF-8 JSON.
        """
        if not self._body_parsed:
            if self.body:
                try:
                    text = self.body.decode("utf-8").lstrip()
                    self._body_json, _ = _DECODER.raw_decode(text)
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    raise HTTPParseError(f"Invalid JSON body: {e}")
            self._body_parsed = True
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    Parsing steps:
        1. Size check                     → 413
        2. Find header/body separator     → 400 if missing
        3. Parse request line             → 400 / 505
        4. Parse headers (lowercased)
        5. Refuse Transfer-Encoding       → 501
        6. Extract body by Content-Length → 400 if short
    """

    # METHOD SP REQUEST-URI SP HTTP-VERSION
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        """
        Args:
            max_request_size: Largest accepted request in bytes. Larger
                              requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Client's (ip, port) tuple.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # Bodies are framed by Content-Length only. A chunked body left on
        # the socket would be read as the next request, so the connection
        # is refused and closed instead.
        if "transfer-encoding" in headers:
            raise HTTPParseError(
                f"Transfer-Encoding not supported: {headers['transfer-encoding']}",
                status_code=501,
            )

        # Body length MUST match Content-Length (no request smuggling)
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, path, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        # "/todos/1?x=y" → path "/todos/1"; the query string is ignored
        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        if not path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {uri!r}")

        return method, path, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2).
        Malformed lines are skipped.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
