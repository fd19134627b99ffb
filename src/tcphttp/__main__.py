"""
=============================================================================
TCPHTTP CLI ENTRY POINT
=============================================================================

    # Run with defaults (localhost:3030)
    python -m tcphttp

    # Custom port, all interfaces
    python -m tcphttp --host 0.0.0.0 --port 8080

    # Answer exactly one connection, then exit
    python -m tcphttp --single-request

    # JSON access log
    python -m tcphttp --log-format json

Command-line flags override TCPHTTP_* environment variables, which
override the ServerConfig defaults.

Two handlers are registered so the server does something useful out of
the box:

    GET  /       200 "OK"
    POST /echo   the request body back, with the request's Content-Type

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .errors import ListenError
from .http import HandlerContext
from .server import HTTPServer


def index(ctx: HandlerContext):
    """Default 200 "OK" response; nothing to change."""


def echo(ctx: HandlerContext):
    """Send the request body back."""
    ctx.response.set_body(ctx.body, ctx.headers.get("Content-Type"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcphttp",
        description="Minimal HTTP/1.1 server on raw TCP sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tcphttp                        # Run with defaults
  python -m tcphttp --port 8080            # Custom port
  python -m tcphttp --host 0.0.0.0         # Listen on all interfaces
  python -m tcphttp --single-request       # Serve one connection and exit
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: localhost, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 3030)"
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        default=None,
        help="Seconds to wait for a request before dropping the connection (default: 5)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--single-request",
        action="store_true",
        default=None,
        help="Handle exactly one connection, then exit"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tcphttp {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then any flag that was actually given."""
    config = ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "read_timeout": args.read_timeout,
        "single_request": args.single_request,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    server.get("/")(index)
    server.post("/echo")(echo)

    try:
        server.run()
    except ListenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
