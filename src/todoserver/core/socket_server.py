"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket: bind, listen, accept, close.

    socket() → setsockopt() → bind() → listen() → accept() loop
                                                      │
                                                      ▼
                                        connection_handler(Connection)

The accept loop polls with a 1 second timeout so that stop() is noticed
even on platforms where closing a listener does not wake accept().

=============================================================================
INTENTIONAL CLOSE VS. FATAL ERROR
=============================================================================

    bind()/listen() fails                   → StartupError
    accept() fails while running            → StartupError
    accept() fails after stop() was called  → normal return

SIGINT and SIGTERM are forwarded to an on_signal callback. Python only
allows signal handlers on the main thread, so a server running in a
background thread (tests, embedding) leaves signals alone.
=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from ..errors import StartupError
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        server.bind()                     # raises StartupError
        server.serve(handle_connection)   # blocks until stop()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._original_handlers: dict = {}
        self._address: Optional[Tuple[str, int]] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when 0 was requested."""
        if self._address is not None:
            return self._address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after restart (skip TIME_WAIT)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Small JSON responses: don't wait for Nagle coalescing
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self, on_signal: Callable[[str], None]) -> None:
        """Route SIGTERM and SIGINT to on_signal(signal_name)."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            on_signal(signal.Signals(signum).name)

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound (host, port).

        Raises:
            StartupError: If the address cannot be bound.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise StartupError(
                f"cannot listen on {self.config.host}:{self.config.port}: {e}"
            ) from e

        self._socket = sock
        self._address = sock.getsockname()[:2]
        self._running = True
        return self._address

    def serve(
        self,
        connection_handler: Callable[[Connection], None],
        on_signal: Optional[Callable[[str], None]] = None
    ) -> None:
        """
        Accept connections until stop() is called.

        Args:
            connection_handler: Called once per accepted Connection. Must
                                not block; hand the connection off.
            on_signal: Called with "SIGINT"/"SIGTERM" when a shutdown
                       signal arrives. Defaults to stop().

        Raises:
            StartupError: If accept() fails while the server is running.
        """
        if self._socket is None:
            self.bind()

        self._setup_signals(on_signal or (lambda name: self.stop()))
        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                    raise StartupError(f"listener failed: {e}") from e
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def stop(self) -> None:
        """
        Stop accepting. Safe to call from any thread, more than once.

        The listener is shut down so a blocked accept() returns at once;
        the accept loop closes it on its way out.
        """
        if not self._running:
            return
        self._running = False
        sock = self._socket
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Not supported on every platform for listeners; the accept
                # timeout picks up the stop flag instead
                pass

    def _cleanup(self) -> None:
        self._running = False
        self._restore_signals()
        if self._socket:
            self._socket.close()
            self._socket = None
        logger.debug("Listener closed")

