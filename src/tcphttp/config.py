"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass, validated once at startup.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tcphttp --port 3000                             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TCPHTTP_PORT=3000 python -m tcphttp                       │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The read buffer and read deadline are part of the protocol contract
(one recv of at most 8192 bytes, 5 second deadline). They are exposed
here for tests and experiments, not because larger values make the
server accept larger requests in a meaningful way.

=============================================================================
"""

import os
from dataclasses import dataclass


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog

    CONNECTION
    - buffer_size, read_timeout

    BEHAVIOUR
    - single_request, server_name

    LOGGING
    - log_level, log_format, access_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "localhost"
    """Address to bind to. "0.0.0.0" for all interfaces."""

    port: int = 3030
    """Port to listen on. 0 lets the OS pick a free port."""

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 8192
    """
    Size of the single read per connection, in bytes.
    Requests larger than this are truncated to what the first recv() saw.
    """

    read_timeout: float = 5.0
    """
    Read deadline in seconds, armed before the first (and only) read.
    A client that sends nothing in time is dropped without a response.
    """

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    single_request: bool = False
    """Handle exactly one connection, then stop the accept loop."""

    server_name: str = "Py-TCP-HTTP"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    access_log: bool = True
    """Emit one tcphttp.access line per response written."""

    @property
    def address(self) -> tuple:
        """The configured (host, port) pair."""
        return (self.host, self.port)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        TCPHTTP_HOST            Bind address (default: localhost)
        TCPHTTP_PORT            Port (default: 3030)
        TCPHTTP_READ_TIMEOUT    Read deadline in seconds (default: 5)
        TCPHTTP_SINGLE_REQUEST  "1"/"true" to serve one connection only
        TCPHTTP_LOG_LEVEL       Logging level (default: INFO)
        TCPHTTP_LOG_FORMAT      text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("TCPHTTP_HOST", "localhost"),
            port=int(os.getenv("TCPHTTP_PORT", "3030")),
            read_timeout=float(os.getenv("TCPHTTP_READ_TIMEOUT", "5")),
            single_request=os.getenv("TCPHTTP_SINGLE_REQUEST", "").lower() in _TRUE_VALUES,
            log_level=os.getenv("TCPHTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("TCPHTTP_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer.__init__ so a bad value fails at startup, not
        on the first connection.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
