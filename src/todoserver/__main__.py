"""
=============================================================================
COMMAND LINE INTERFACE
=============================================================================

    python -m todoserver                    # :8080, all interfaces
    python -m todoserver --port 3000
    python -m todoserver -l DEBUG --log-format json
    TODO_PORT=9000 todoserver               # environment works too

Exit status:
    0   clean shutdown (SIGINT / SIGTERM)
    1   fatal startup error (port in use, listener failure)
    2   invalid arguments or configuration
=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig, LOG_LEVELS, LOG_FORMATS
from .errors import StartupError
from .server import create_app


logger = logging.getLogger("todoserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todoserver",
        description="In-memory todo list HTTP service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  todoserver                          # Run with defaults (port 8080)
  todoserver --port 3000              # Custom port
  todoserver --host 127.0.0.1         # Local interface only
  todoserver --shutdown-timeout 10    # Longer grace period
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0, env TODO_HOST)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080, env TODO_PORT)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Seconds to let in-flight requests finish on shutdown (default: 5)"
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO, env TODO_LOG_LEVEL)"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text, env TODO_LOG_FORMAT)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"todoserver {__version__}"
    )
    return parser


def load_config(args: argparse.Namespace, environ: Optional[dict] = None) -> ServerConfig:
    """
    Environment first, then CLI flags on top.

    Raises:
        ValueError: Unparsable environment value or invalid result.
    """
    config = ServerConfig.from_env(environ).merge(
        host=args.host,
        port=args.port,
        shutdown_timeout=args.shutdown_timeout,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        parser.error(str(e))

    server = create_app(config)

    try:
        server.run()
    except StartupError as e:
        logger.error("Server error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
