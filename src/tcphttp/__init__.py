"""
=============================================================================
TCPHTTP - Minimal HTTP/1.1 Server on Raw Sockets
=============================================================================

Accepts TCP connections, parses one HTTP/1.1 request per connection,
dispatches it to a handler by exact (path, method) match, writes the
response and closes.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tcphttp/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI entry point (python -m tcphttp)
    ├── server.py            # HTTPServer, serve()
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # ErrorKind and exception types
    ├── access_log.py        # One line per response
    ├── core/
    │   ├── socket_server.py # Listener and accept loop
    │   └── connection.py    # Client socket wrapper
    └── http/
        ├── request.py       # bytes → HttpMessage
        ├── response.py      # Response → bytes
        ├── router.py        # HandlerRegistry and dispatch
        └── status_codes.py  # Status codes and reason phrases

=============================================================================
QUICK START
=============================================================================

    from tcphttp import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=3030))

    @server.get("/ping")
    def ping(ctx):
        ctx.response.set_body("pong")

    server.run()

=============================================================================
"""

from .server import HTTPServer, serve
from .config import ServerConfig
from .errors import (
    ErrorKind,
    HTTPServerError,
    ParseError,
    TransportError,
    HandlerError,
    ListenError,
)
from .http import (
    HTTPStatus,
    HttpMessage,
    parse_request,
    Response,
    serialize,
    HandlerContext,
    HandlerRegistry,
    dispatch,
)

__version__ = "1.0.0"

__all__ = [
    # Server
    "HTTPServer",
    "serve",
    "ServerConfig",
    # Errors
    "ErrorKind",
    "HTTPServerError",
    "ParseError",
    "TransportError",
    "HandlerError",
    "ListenError",
    # HTTP
    "HTTPStatus",
    "HttpMessage",
    "parse_request",
    "Response",
    "serialize",
    "HandlerContext",
    "HandlerRegistry",
    "dispatch",
    "__version__",
]
