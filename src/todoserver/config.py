"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One dataclass holds every tunable. Values come from three layers, highest
priority first:

    ┌────────────────────┬──────────────────────────────────────────────┐
    │  Source            │  Example                                     │
    ├────────────────────┼──────────────────────────────────────────────┤
    │  CLI flags         │  todoserver --port 9000                      │
    │  Environment       │  TODO_PORT=9000 todoserver                   │
    │  Defaults          │  ServerConfig()                              │
    └────────────────────┴──────────────────────────────────────────────┘

validate() runs once at startup and fails fast with ValueError.
=============================================================================
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from . import __version__


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the todo server.

    Development:
        ServerConfig(host="127.0.0.1", port=0, log_level="DEBUG")

    Production:
        ServerConfig(host="0.0.0.0", port=8080, shutdown_timeout=5.0)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Bind address. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Listen port. 0 asks the OS for a free ephemeral port."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Read timeout for the first request on a connection, in seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: float = 5.0
    """
    Grace period in seconds. After a shutdown signal, in-flight requests
    get this long to finish before they are abandoned.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (one line) or 'json' (one object)."""

    server_name: str = field(default_factory=lambda: f"TodoServer/{__version__}")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerConfig":
        """
        Build a configuration from environment variables.

            TODO_HOST              bind address          (0.0.0.0)
            TODO_PORT              listen port           (8080)
            TODO_SHUTDOWN_TIMEOUT  grace period seconds  (5)
            TODO_LOG_LEVEL         logging level         (INFO)
            TODO_LOG_FORMAT        text | json           (text)

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("TODO_HOST", defaults.host),
            port=int(env.get("TODO_PORT", defaults.port)),
            shutdown_timeout=float(env.get("TODO_SHUTDOWN_TIMEOUT", defaults.shutdown_timeout)),
            log_level=env.get("TODO_LOG_LEVEL", defaults.log_level).upper(),
            log_format=env.get("TODO_LOG_FORMAT", defaults.log_format).lower(),
        )

    def merge(self, **overrides) -> "ServerConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown log format: {self.log_format}")
