"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: listener, per-connection threads, parser,
registry, serializer and access log.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP SERVER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │ Thread per   │    │ Handler      │        │
    │    │ (Networking) │    │ connection   │    │ Registry     │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────┘        │
    │           │                   │                                     │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌──────────────────────────────┐            │
    │    │  Connection  │    │ parse → dispatch → serialize │            │
    │    └──────────────┘    └──────────────────────────────┘            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT      SocketServer accepts, wraps socket in a Connection
    2. SPAWN       One daemon thread per connection (inline in
                   single-request mode)
    3. READ        One recv(), 5 s deadline. EOF/timeout → close, no reply
    4. PARSE       parse_request(). ParseError → 400 Bad Request
    5. DISPATCH    Registry lookup → handler → 200 / 404 / 500
    6. WRITE       serialize() once, sendall() once
    7. LOG         One access-log line
    8. CLOSE       Always, on every path

Steps 3 to 8 run inside a fault barrier: anything unexpected is logged
with its traceback and the connection is closed. One bad connection never
takes down another, or the accept loop.

=============================================================================
SHUTDOWN
=============================================================================

shutdown() (or SIGINT/SIGTERM) stops the accept loop and sets the cancel
event every HandlerContext carries. Connections already in flight are
NOT waited for: their threads are daemons and finish on their own, or die
with the process.

=============================================================================
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Mapping, Optional, Tuple, Union

from .access_log import RequestLog, log_request, now_timestamp
from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState
from .errors import ParseError, TransportError
from .http import (
    Handler,
    HandlerRegistry,
    Response,
    dispatch,
    parse_request,
    serialize,
)


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class HTTPServer:
    """
    Minimal HTTP/1.1 server on raw sockets.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=3030))

        @server.get("/ping")
        def ping(ctx):
            ctx.response.set_body("pong")

        @server.post("/echo")
        def echo(ctx):
            ctx.response.set_body(ctx.body)

        server.run()  # Blocks until Ctrl+C

    Or hand over a ready-made registry:

        registry = HandlerRegistry.from_mapping({"/ping_GET": ping})
        HTTPServer(registry=registry).serve()

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        registry: Optional[HandlerRegistry] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().
            registry: Handlers to serve. A fresh, empty registry is created
                      when omitted; fill it through the decorators below.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._registry = registry if registry is not None else HandlerRegistry()
        self._socket_server = SocketServer(self.config)

        # Handed to every handler; set on shutdown
        self._cancel = threading.Event()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    # Alias kept for callers used to the router naming
    router = registry

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, configured address before."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # ROUTE REGISTRATION (Decorator Style)
    # =========================================================================

    def route(self, path: str, method: str):
        """Register a handler for an exact path and method."""
        return self._registry.route(path, method)

    def get(self, path: str):
        return self._registry.get(path)

    def post(self, path: str):
        return self._registry.post(path)

    def put(self, path: str):
        return self._registry.put(path)

    def delete(self, path: str):
        return self._registry.delete(path)

    def patch(self, path: str):
        return self._registry.patch(path)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Configure logging and serve until Ctrl+C (blocking).

        This is the entry point for scripts and the CLI. Library callers
        that manage logging themselves should use serve().

        Raises:
            ListenError: If the address cannot be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()

        try:
            self.serve()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
            self.shutdown()

    def serve(self):
        """
        Freeze the registry and run the accept loop (blocking).

        Returns normally after shutdown(), a signal, or (in single-request
        mode) after the first connection has been handled.

        Raises:
            ListenError: If the address cannot be bound.
        """
        self._registry.freeze()

        logger.info(
            f"Starting HTTP server on {self.config.host}:{self.config.port} "
            f"({len(self._registry)} handlers)"
        )
        for key in self._registry:
            logger.debug(f"Handler registered: {key}")

        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._cancel.set()

        logger.info("Server stopped")

    def shutdown(self):
        """
        Stop accepting connections and signal cancellation to handlers.

        Safe to call from another thread or more than once. Does not wait
        for in-flight connections.
        """
        self._cancel.set()
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is bound. Returns False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
        )
        logging.getLogger("tcphttp").setLevel(level)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Called by SocketServer for each accepted connection.

        Starts a daemon thread for it and returns straight away. In
        single-request mode the connection is processed inline instead.
        """
        if self.config.single_request:
            self._process_connection(conn)
            return

        worker = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        try:
            worker.start()
        except RuntimeError as e:
            # Can't start new thread: out of resources
            logger.error(f"[{conn.id}] Could not start connection thread: {e}")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Full lifecycle of one connection, wrapped in the fault barrier.

        Never raises.
        """
        with conn:
            try:
                self._serve_connection(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Unhandled error while serving connection: {e}")

    def _serve_connection(self, conn: Connection):
        started = time.perf_counter()

        # ─── STEP 1: READ ────────────────────────────────────────────────
        try:
            data = conn.read_request()
        except TransportError as e:
            logger.warning(f"[{conn.id}] Dropping connection: {e}")
            return

        if data is None:
            logger.debug(f"[{conn.id}] Client closed before sending a request")
            return

        # ─── STEP 2: PARSE ───────────────────────────────────────────────
        conn.state = ConnectionState.PARSING
        method = path = "-"
        try:
            request = parse_request(data)
        except ParseError as e:
            logger.debug(f"[{conn.id}] Bad request ({e.kind.name}): {e}")
            response = Response().bad_request()
        else:
            # ─── STEP 3: DISPATCH ────────────────────────────────────────
            conn.state = ConnectionState.DISPATCHING
            method, path = request.method, request.path
            response = dispatch(self._registry, request, self._cancel)

        # ─── STEP 4: WRITE ───────────────────────────────────────────────
        payload = serialize(response, server_name=self.config.server_name)
        if not conn.send_response(payload):
            return

        # ─── STEP 5: ACCESS LOG ──────────────────────────────────────────
        if self.config.access_log:
            log_request(
                RequestLog(
                    connection_id=conn.id,
                    client_ip=conn.client_ip,
                    method=method,
                    path=path,
                    status_code=int(response.status_code),
                    content_length=len(response.body.encode("utf-8")),
                    duration_ms=(time.perf_counter() - started) * 1000,
                    timestamp=now_timestamp(),
                ),
                log_format=self.config.log_format,
            )


def serve(
    address: Tuple[str, int],
    registry: Union[HandlerRegistry, Mapping[str, Handler]],
    config: Optional[ServerConfig] = None,
):
    """
    Serve ``registry`` on ``address`` until shutdown (blocking).

    Args:
        address: (host, port) to bind. Overrides the config's host/port.
        registry: A HandlerRegistry, or a flat ``{"/path_METHOD": handler}``
                  mapping.
        config: Remaining settings. Defaults to ServerConfig().

    Raises:
        ListenError: If the address cannot be bound.

    Example:
        serve(("localhost", 3030), {"/ping_GET": ping})
    """
    host, port = address
    config = replace(config or ServerConfig(), host=host, port=port)

    if not isinstance(registry, HandlerRegistry):
        registry = HandlerRegistry.from_mapping(registry)

    HTTPServer(config, registry).serve()
