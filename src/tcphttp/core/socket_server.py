"""
=============================================================================
TCP LISTENER AND ACCEPT LOOP
=============================================================================

Owns the listening socket. Binds, listens, accepts, and hands every
accepted client socket (wrapped in a Connection) to a callback. It knows
nothing about HTTP.

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── Created once in start()
    │   localhost:3030      │     Never sends/receives data
    └───────────┬───────────┘
                │ accept()
        ┌───────┼───────────────────────┐
        ▼       ▼                       ▼
    Connection  Connection   ...    Connection
    (one per accepted client, handed to connection_handler)

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Restarting right after a stop would otherwise fail with "Address
    already in use" while old connections sit in TIME_WAIT. It does NOT
    let two live listeners share a port; that still fails and surfaces as
    ListenError.

TCP_NODELAY:
    Disables Nagle's algorithm. A response is written with one sendall()
    and the socket is closed right after, so there is nothing to gain by
    waiting to coalesce segments.

=============================================================================
SHUTDOWN
=============================================================================

accept() is given a 1 second timeout so the loop re-checks the running
flag regularly. shutdown() additionally calls shutdown(SHUT_RDWR) on the
listener, which makes a blocked accept() return immediately with an
OSError. Once the running flag is down that OSError is the normal way
out of the loop:

    shutdown()  ──►  _running = False
                ──►  listener.shutdown(SHUT_RDWR)
                          │
                          ▼
    accept() raises OSError  ──►  not running?  ──►  break (clean exit)
                                  still running? ──►  log, keep accepting

SIGINT and SIGTERM trigger the same shutdown(), but only when start() runs
on the main thread. Python only allows signal handlers there; a server
started from a test thread or an embedding application simply doesn't
install them.

=============================================================================
"""

import socket
import signal
import threading
import logging
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import ListenError
from .connection import Connection


logger = logging.getLogger(__name__)

# How often accept() wakes up to re-check the running flag
ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Low-level TCP server: bind, listen, accept loop, shutdown.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: host, port, backlog and the per-connection settings
                    copied onto every Connection.

        The socket is created lazily in start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Set once the listener is bound and listening
        self._ready = threading.Event()

        # Set once shutdown has been requested (and again after cleanup)
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound.

        With port 0 the OS picks a free port; this reports it. Before
        start() (or after cleanup) the configured address is returned.
        """
        sock = self._socket
        if sock is not None:
            try:
                return sock.getsockname()[:2]
            except OSError:
                pass
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """
        Route SIGINT/SIGTERM to shutdown().

        Skipped off the main thread, where signal.signal() raises
        ValueError.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop. Blocks until shutdown().

        A SocketServer serves once. If shutdown() was already called,
        start() binds, logs and returns without accepting anything.

        Args:
            connection_handler: Called once per accepted connection, on this
                                thread. It must not block for long; the
                                HTTP server hands the work to a new thread.

        Raises:
            ListenError: If bind() or listen() fails. Nothing has been
                         accepted at that point.
        """
        self._socket = self._create_socket()
        host, port = self.config.host, self.config.port

        try:
            self._socket.bind((host, port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            self._socket.close()
            self._socket = None
            raise ListenError(f"Cannot listen on {host}:{port}: {e}", address=(host, port)) from e

        self._running = True
        self._setup_signals()
        self._ready.set()

        bound_host, bound_port = self.address
        logger.info(f"Server listening on {bound_host}:{bound_port}")

        if self._shutdown_event.is_set():
            # shutdown() arrived before we were listening
            logger.info("Shutdown already requested; not accepting")
            self._running = False

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        Accept until shutdown.

        Accept errors while still running (EMFILE, ECONNABORTED, ...) are
        logged and the loop carries on immediately.
        """
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    # Listener shut down under us: normal termination
                    break
                logger.error(f"Accept error: {e}")
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                read_timeout=self.config.read_timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {client_address[0]}:{client_address[1]}")

            connection_handler(conn)

            if self.config.single_request:
                logger.info("Single-request mode: stopping after one connection")
                self._running = False

    def shutdown(self):
        """
        Stop accepting. Safe to call from any thread, a signal handler, or
        more than once.

        Connections already handed off are not waited for.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

        sock = self._socket
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Not connected / already closed; the poll timeout covers it

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    # =========================================================================
    # WAITING
    # =========================================================================

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is bound. Returns False on timeout."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown was requested. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
