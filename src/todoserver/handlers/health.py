"""
Liveness and version endpoints.

    GET /healthz  → 200 "ok"
    GET /version  → 200 "1.0.0"

Both are plain text and never fail; they touch no shared state.
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, HTTPStatus
from ..http.router import Router


class HealthHandler:
    """
    Usage:
        health = HealthHandler(version=__version__)
        health.register(router)
    """

    def __init__(self, version: str):
        self._version = version

    def register(self, router: Router) -> None:
        router.add_route("/healthz", self.healthz, method="GET")
        router.add_route("/version", self.version, method="GET")

    def healthz(self, request: HTTPRequest) -> HTTPResponse:
        """Liveness check: the process is up and serving."""
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("ok")
            .build())

    def version(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text(self._version)
            .build())
