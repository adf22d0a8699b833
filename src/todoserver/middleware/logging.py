"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Emits exactly one access record per request, after the response exists:

    text:  127.0.0.1 "POST /todos" 201 40 0.41ms
    json:  {"request_id": "3f2a9c1e", "method": "POST", "path": "/todos",
            "client_ip": "127.0.0.1", "status_code": 201, ...}

The status comes from the HTTPResponse returned by the inner chain. When
nothing explicit was set the response is a 200, so "no status written"
is logged as 200. If the inner chain raises, the record is logged with
status 500 and the exception is re-raised for the connection layer.

Records go to the "todoserver.access" logger so they can be routed or
silenced independently:

    logging.getLogger("todoserver.access").setLevel(logging.WARNING)
=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


logger = logging.getLogger("todoserver.access")


@dataclass
class RequestLog:
    """One access record."""

    request_id: str
    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        return (
            f'{self.client_ip or "-"} "{self.method} {self.path}" '
            f'{self.status_code} {self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it FIRST so it is the outermost layer
    and its timing covers the whole chain.

    Usage:
        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add an X-Request-ID response header.
            log_level: Level of the access records.
            skip_paths: Paths that are never logged (noisy health checks).
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.monotonic()

        try:
            response = next(request)
        except Exception:
            self._emit(request, request_id, start_time, HTTPStatus.INTERNAL_SERVER_ERROR, 0)
            raise

        self._emit(request, request_id, start_time, response.status, response.content_length)

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    def _emit(
        self,
        request: HTTPRequest,
        request_id: str,
        start_time: float,
        status: int,
        content_length: int,
    ) -> None:
        if request.path in self.skip_paths:
            return

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            status_code=int(status),
            content_length=content_length,
            duration_ms=(time.monotonic() - start_time) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
