"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
from typing import Callable, Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from todoserver import ServerConfig, TodoServer, TodoStore, MetricsCollector, create_app
from todoserver.errors import StartupError
from todoserver.http import HTTPRequest


@pytest.fixture
def sample_post_request() -> bytes:
    """Raw POST /todos request with a JSON body."""
    body = b'{"title": "buy milk"}'
    return (
        b"POST /todos HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n" +
        b"Content-Length: %d\r\n" % len(body) +
        b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Test configuration: loopback, ephemeral port, short grace period."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        timeout=5.0,
        shutdown_timeout=2.0,
        log_level="INFO",
    )


@pytest.fixture
def store() -> TodoStore:
    return TodoStore()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def app(config: ServerConfig, store: TodoStore, metrics: MetricsCollector) -> TodoServer:
    """Fully wired server that is NOT started."""
    return create_app(config, store=store, metrics=metrics)


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for in-memory requests (no sockets involved)."""
    def factory(
        method: str,
        path: str,
        body=None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPRequest:
        if body is None:
            raw = b""
        elif isinstance(body, bytes):
            raw = body
        elif isinstance(body, str):
            raw = body.encode("utf-8")
        else:
            raw = json.dumps(body).encode("utf-8")
        return HTTPRequest(
            method=method,
            path=path,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            body=raw,
            client_address=("127.0.0.1", 50000),
        )
    return factory


@pytest.fixture
def call(app: TodoServer, make_request) -> Callable:
    """Run a request through the full middleware chain and router."""
    handler = app.build_handler()

    def invoke(method: str, path: str, body=None, headers=None):
        return handler(make_request(method, path, body, headers))
    return invoke


class RunningServer:
    """A TodoServer running in a background thread."""

    def __init__(self, server: TodoServer):
        self.server = server
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        try:
            self.server.run()
        except StartupError as e:
            self.error = e

    def start(self) -> "RunningServer":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_serving(timeout=5.0):
            raise RuntimeError(f"Server failed to start: {self.error}")
        return self

    @property
    def port(self) -> int:
        return self.server.address[1]

    def connection(self, timeout: float = 5.0) -> http.client.HTTPConnection:
        return http.client.HTTPConnection("127.0.0.1", self.port, timeout=timeout)

    def request(
        self,
        method: str,
        path: str,
        body=None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, Dict[str, str], bytes]:
        """One request on a fresh connection; returns (status, headers, body)."""
        if body is not None and not isinstance(body, (bytes, str)):
            body = json.dumps(body)
        conn = self.connection()
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()

    def raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as sock:
            sock.sendall(data)
            chunks = []
            while True:
                chunk = sock.recv(8192)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def stop(self, timeout: float = 10.0):
        self.server.shutdown()
        self.server.wait_until_stopped(timeout=timeout)
        if self._thread is not None:
            self._thread.join(timeout=timeout)


@pytest.fixture
def live_server(app: TodoServer) -> Generator[RunningServer, None, None]:
    """The wired app, serving on 127.0.0.1 on an ephemeral port."""
    running = RunningServer(app).start()
    yield running
    running.stop()


@pytest.fixture
def start_server(config: ServerConfig) -> Generator[Callable[..., RunningServer], None, None]:
    """
    Factory for servers with custom settings or extra routes.

        running = start_server(shutdown_timeout=0.5, setup=add_slow_route)
    """
    started = []

    def factory(setup: Optional[Callable[[TodoServer], None]] = None, **overrides) -> RunningServer:
        server = create_app(config.merge(**overrides))
        if setup is not None:
            setup(server)
        running = RunningServer(server)
        started.append(running)
        return running.start()

    yield factory
    for running in started:
        running.stop()
