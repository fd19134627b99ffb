"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the server can observe belongs to exactly one ErrorKind.
Callers branch on ``error.kind``, never on message text.

    ┌──────────────────────┬────────────────────────┬──────────────────────┐
    │  Kind                │  Raised by             │  Client sees         │
    ├──────────────────────┼────────────────────────┼──────────────────────┤
    │  EMPTY_REQUEST       │  parse_request()       │  400 Bad Request     │
    │  INVALID_START_LINE  │  parse_request()       │  400 Bad Request     │
    │  INVALID_HEADER      │  parse_request()       │  400 Bad Request     │
    │  MISSING_HOST        │  parse_request()       │  400 Bad Request     │
    │  HANDLER_ERROR       │  dispatch()            │  500 Internal Error  │
    │  TRANSPORT_ERROR     │  Connection read/write │  nothing (dropped)   │
    │  LISTEN_ERROR        │  SocketServer.start()  │  n/a (fatal to serve)│
    └──────────────────────┴────────────────────────┴──────────────────────┘

The four parse kinds are deliberately collapsed into one 400 response;
the specific kind only shows up in the server log.

=============================================================================
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed set of failure kinds."""
    EMPTY_REQUEST = "empty_request"
    INVALID_START_LINE = "invalid_start_line"
    INVALID_HEADER = "invalid_header"
    MISSING_HOST = "missing_host"
    TRANSPORT_ERROR = "transport_error"
    HANDLER_ERROR = "handler_error"
    LISTEN_ERROR = "listen_error"


PARSE_ERROR_KINDS = frozenset({
    ErrorKind.EMPTY_REQUEST,
    ErrorKind.INVALID_START_LINE,
    ErrorKind.INVALID_HEADER,
    ErrorKind.MISSING_HOST,
})


class HTTPServerError(Exception):
    """
    Base class for all tagged server errors.

    Args:
        kind: The ErrorKind this error belongs to.
        message: Human-readable detail (for logs only).
    """

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


class ParseError(HTTPServerError):
    """
    Raised when raw request bytes cannot be turned into an HttpMessage.

    Always maps to 400 Bad Request. The status code lives on the exception
    so the connection lifecycle doesn't need to know the mapping.
    """

    status_code = 400

    def __init__(self, kind: ErrorKind, message: str = ""):
        if kind not in PARSE_ERROR_KINDS:
            raise ValueError(f"{kind} is not a parse error kind")
        super().__init__(kind, message)


class TransportError(HTTPServerError):
    """Read/write failure on a client socket (includes read deadline)."""

    def __init__(self, message: str = ""):
        super().__init__(ErrorKind.TRANSPORT_ERROR, message)


class HandlerError(HTTPServerError):
    """
    A registered handler raised.

    The original exception is chained as ``__cause__``; use ``raise
    HandlerError(...) from exc``.
    """

    def __init__(self, message: str = "", route: Optional[str] = None):
        super().__init__(ErrorKind.HANDLER_ERROR, message)
        self.route = route


class ListenError(HTTPServerError):
    """
    Binding or listening on the configured address failed.

    The underlying OSError is chained as ``__cause__``.
    """

    def __init__(self, message: str = "", address: tuple = ("", 0)):
        super().__init__(ErrorKind.LISTEN_ERROR, message)
        self.address = address
