"""
=============================================================================
TODO SERVER
=============================================================================

Ties the socket layer, the parser, the middleware chain and the router
together, and owns the server lifecycle.

=============================================================================
REQUEST FLOW
=============================================================================

    accept() ──► Connection ──► daemon thread per connection
                                    │
                                    ▼
                   read_request() → RequestParser.parse()
                                    │
                                    ▼
              LoggingMiddleware → MetricsMiddleware → Router → handler
                                    │
                                    ▼
                        HTTPResponse.to_bytes() → sendall()
                                    │
                       keep-alive? ─┴─ loop : close

=============================================================================
LIFECYCLE
=============================================================================

    STARTING ──bind ok──► SERVING ──shutdown()──► DRAINING ──► STOPPED
        │                                                        ▲
        └────────────────bind failed (StartupError)──────────────┘

    shutdown() (SIGINT / SIGTERM or any thread):
        1. stop accepting; the listener is closed
        2. interrupt connections idle between requests
        3. responses produced while draining carry "Connection: close"
        4. wait up to shutdown_timeout for in-flight requests
        5. abandon whatever is left (daemon threads), log "Goodbye"
=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Set, Tuple

from . import __version__
from .config import ServerConfig
from .core import SocketServer, Connection, RequestTracker
from .errors import StartupError
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, error_response, internal_error,
)
from .http.router import Router
from .handlers import HealthHandler, MetricsHandler, TodoHandler
from .metrics import MetricsCollector
from .middleware import (
    MiddlewarePipeline, Middleware, LoggingMiddleware, MetricsMiddleware,
)
from .store import TodoStore


logger = logging.getLogger(__name__)


class ServerState(Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


_TRANSITIONS = {
    ServerState.STARTING: {ServerState.SERVING, ServerState.STOPPED},
    ServerState.SERVING: {ServerState.DRAINING},
    ServerState.DRAINING: {ServerState.STOPPED},
    ServerState.STOPPED: set(),
}


class TodoServer:
    """
    HTTP/1.1 server for the todo API.

    Usage:
        server = create_app(ServerConfig(port=8080))
        server.run()                      # blocks until shutdown

    Embedding (tests):
        server = create_app(ServerConfig(host="127.0.0.1", port=0))
        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_serving(timeout=5)
        host, port = server.address
        ...
        server.shutdown()
        server.wait_until_stopped(timeout=10)
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[TodoStore] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Args:
            config: Server configuration; defaults when omitted.
            store: Shared todo store; a fresh one when omitted.
            metrics: Shared metrics collector; a fresh one when omitted.

        Raises:
            ValueError: If the configuration does not validate.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.store = store if store is not None else TodoStore()
        self.metrics = metrics if metrics is not None else MetricsCollector()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._tracker = RequestTracker()
        self._connections: Set[Connection] = set()
        self._connections_lock = threading.RLock()

        # RLock: shutdown() may run from a signal handler on the main thread
        self._state = ServerState.STARTING
        self._state_changed = threading.Condition(threading.RLock())
        self._served = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "TodoServer":
        """Add middleware; first added is outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    def build_handler(self) -> Callable[[HTTPRequest], HTTPResponse]:
        """The full chain: middleware wrapped around the router."""
        return self._middleware.wrap(self._router.handle)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ServerState:
        with self._state_changed:
            return self._state

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once serving."""
        return self._socket_server.address

    @property
    def in_flight(self) -> int:
        return self._tracker.active

    def _transition(self, new_state: ServerState) -> None:
        with self._state_changed:
            if new_state not in _TRANSITIONS[self._state]:
                raise RuntimeError(
                    f"Illegal state transition {self._state.name} -> {new_state.name}"
                )
            logger.debug("State %s -> %s", self._state.name, new_state.name)
            self._state = new_state
            if new_state is ServerState.SERVING:
                self._served = True
            self._state_changed.notify_all()

    def wait_until_serving(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the listener is up.

        Returns:
            True once the server has reached SERVING, False if startup
            failed or the timeout expired first.
        """
        with self._state_changed:
            self._state_changed.wait_for(
                lambda: self._state is not ServerState.STARTING, timeout
            )
            return self._served

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        """Block until STOPPED; False if the timeout expired first."""
        with self._state_changed:
            return self._state_changed.wait_for(
                lambda: self._state is ServerState.STOPPED, timeout
            )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Bind, serve until shutdown, drain, stop. Blocks.

        Raises:
            StartupError: The listener could not be bound, or failed while
                          serving. The server ends up STOPPED either way.
        """
        self._setup_logging()
        self._handler = self.build_handler()

        try:
            host, port = self._socket_server.bind()
        except StartupError:
            self._transition(ServerState.STOPPED)
            raise

        self._transition(ServerState.SERVING)
        logger.info("Server v%s listening on %s:%d", __version__, host, port)

        try:
            self._socket_server.serve(self._handle_connection, on_signal=self._on_signal)
        except StartupError:
            logger.error("Listener failed; stopping without grace period")
            self.shutdown()
            self._transition(ServerState.STOPPED)
            raise

        self._drain()

    def shutdown(self) -> bool:
        """
        Begin graceful shutdown. Returns immediately; run() performs the
        bounded wait and moves the server to STOPPED.

        Safe to call from any thread and more than once.

        Returns:
            True if this call started the drain.
        """
        with self._state_changed:
            if self._state is not ServerState.SERVING:
                return False
            self._transition(ServerState.DRAINING)

        logger.info(
            "Draining: waiting up to %.1fs for in-flight requests",
            self.config.shutdown_timeout,
        )
        self._socket_server.stop()

        interrupted = 0
        with self._connections_lock:
            for conn in self._connections:
                if conn.interrupt_if_idle():
                    interrupted += 1
        logger.debug("Interrupted %d idle connection(s)", interrupted)
        return True

    def _on_signal(self, signal_name: str) -> None:
        logger.info("Shutdown signal received (%s)", signal_name)
        self.shutdown()

    def _drain(self) -> None:
        if self._tracker.wait_idle(self.config.shutdown_timeout):
            logger.info("All in-flight requests completed")
        else:
            logger.warning(
                "Grace period of %.1fs expired; abandoning %d in-flight request(s)",
                self.config.shutdown_timeout, self._tracker.active,
            )
        self._transition(ServerState.STOPPED)
        logger.info("Goodbye")

    def _setup_logging(self) -> None:
        """Configure logging from config (no-op if already configured)."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("todoserver").setLevel(level)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Register the connection and hand it to its own daemon thread."""
        with self._connections_lock:
            self._connections.add(conn)
            if self.state is not ServerState.SERVING:
                conn.interrupt_if_idle()

        worker = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        worker.start()

    def _process_connection(self, conn: Connection) -> None:
        try:
            with conn:
                self._serve_connection(conn)
        finally:
            with self._connections_lock:
                self._connections.discard(conn)

    def _serve_connection(self, conn: Connection) -> None:
        """
        The keep-alive loop for one connection.

        read → parse → dispatch → send, repeated until the client closes,
        asks to close, an error occurs, or the server starts draining.
        """
        while True:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "request timeout")
                return
            except ValueError:
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "request too large")
                return
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.debug(f"[{conn.id}] Malformed request: {e}")
                status = HTTPStatus(e.status_code)
                self._send_error(conn, status, status.phrase.lower())
                return

            with self._tracker.track():
                conn.mark_processing()
                response = self._dispatch(conn, request)

                keep_alive = (
                    request.is_keep_alive
                    and self.config.keep_alive
                    and self.state is ServerState.SERVING
                )
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                sent = conn.send_response(response.to_bytes(self.config.server_name))

            if not sent or not keep_alive:
                return
            conn.set_keep_alive()
            # Checked after going idle so a concurrent shutdown() cannot miss us
            if self.state is not ServerState.SERVING:
                return

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        """Run the handler chain; unexpected exceptions become a 500."""
        try:
            return self._handler(request)
        except Exception:
            logger.exception(f"[{conn.id}] Unhandled error in {request.method} {request.path}")
            return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str) -> None:
        """Answer a request that never reached the handler chain, then close."""
        response = error_response(status, message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[TodoStore] = None,
    metrics: Optional[MetricsCollector] = None,
) -> TodoServer:
    """
    Build a fully wired TodoServer.

    Routes: /healthz, /version, /metrics, /todos, /todos/{id}.
    Chain:  logging(metrics(router)).

    Args:
        config: Server configuration.
        store: Shared store (tests inject their own).
        metrics: Shared metrics collector.
    """
    server = TodoServer(config, store=store, metrics=metrics)

    HealthHandler(version=__version__).register(server.router)
    MetricsHandler(server.metrics, server.store).register(server.router)
    TodoHandler(server.store).register(server.router)

    server.use(LoggingMiddleware(log_format=server.config.log_format))
    server.use(MetricsMiddleware(server.metrics))
    return server
