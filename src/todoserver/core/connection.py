"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with buffered HTTP request reads,
response writes and keep-alive bookkeeping.

TCP is a byte stream: a request may arrive split over many recv() calls,
and one recv() may hold the tail of one request and the head of the next.
Requests are therefore accumulated in a buffer until the header
terminator (\r\n\r\n) and Content-Length bytes of body have arrived;
any surplus stays buffered for the next request.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ─┐
               ▲                                               │
               └───────────────────────────────────────────────┘
                                 │
                                 ▼
                        CLOSING ──► CLOSED

A connection is IDLE when it is NEW, KEEP_ALIVE, or READING with nothing
buffered yet. Idle connections can be interrupted during shutdown without
losing a request; busy ones are left to finish.
=============================================================================
"""

import socket
import threading
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""

    NEW = "new"                # Accepted, nothing read yet
    READING = "reading"        # Reading request data
    PROCESSING = "processing"  # Handler running
    WRITING = "writing"        # Sending response
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for next request
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.
        timeout: Read timeout for the first request.
        keep_alive_timeout: Idle timeout between keep-alive requests.
        max_request_size: Requests larger than this are refused.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _state_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _interrupted: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def is_idle(self) -> bool:
        """True when no request is partially read or being processed."""
        return (
            self.state in (ConnectionState.NEW, ConnectionState.KEEP_ALIVE)
            or (self.state == ConnectionState.READING and not self._buffer)
        )

    def _set_state(self, state: ConnectionState) -> None:
        with self._state_lock:
            self.state = state

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        The first request uses `timeout`; later ones on the same
        connection use the shorter `keep_alive_timeout`.

        Returns:
            Raw request bytes, or None if the client closed the connection,
            the keep-alive wait expired, or the connection was interrupted.

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self._set_state(ConnectionState.READING)

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])
            if body_start + content_length > self.max_request_size:
                raise ValueError(
                    f"Request too large: {body_start + content_length} bytes"
                )

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    # Short body; the parser reports it as malformed
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        """recv() that maps a reset or an interrupted socket to EOF."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError:
            if self._interrupted:
                return b""
            raise
        return data

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or unparsable.

        Unparsable values are rejected later by the request parser.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                value = line.split(":", 1)[1].strip()
                return int(value) if value.isdigit() else 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def mark_processing(self) -> None:
        self._set_state(ConnectionState.PROCESSING)

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True on success, False if the client went away.
        """
        self._set_state(ConnectionState.WRITING)
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        return True

    def set_keep_alive(self) -> None:
        """Response sent; wait for the next request."""
        self._set_state(ConnectionState.KEEP_ALIVE)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def interrupt_if_idle(self) -> bool:
        """
        Wake a connection blocked waiting for its next request.

        Shuts the socket down in both directions so the pending recv()
        returns immediately. Busy connections are left alone.

        Returns:
            True if the connection was idle and has been interrupted.
        """
        with self._state_lock:
            if not self.is_idle:
                return False
            self._interrupted = True
            try:
                self.socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Peer already gone
                return True
        logger.debug(f"[{self.id}] Interrupted idle connection")
        return True

    def close(self) -> None:
        """
        Close the connection.

        Sends FIN (shutdown SHUT_WR), drains what the client still sends
        for a short moment, then releases the descriptor.
        """
        with self._state_lock:
            if self.state == ConnectionState.CLOSED:
                return
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        self.socket.close()
        self._set_state(ConnectionState.CLOSED)
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
