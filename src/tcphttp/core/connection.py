"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: a single bounded read, a single write,
and a close that always happens.

=============================================================================
ONE READ, ONE WRITE, CLOSE
=============================================================================

TCP is a byte stream. A request may in principle arrive split across
several segments. This server does NOT reassemble: it arms a read
deadline, calls recv() ONCE with a fixed-size buffer and parses whatever
came back.

    Client sends:  "GET /ping HTTP/1.1\r\nHost: x\r\n\r\n"   (small, one segment)
    recv(8192)  →  the whole request            ✓ parsed

    Client sends:  20 KB upload
    recv(8192)  →  first 8 KB only              ✗ body truncated

    Client sends:  "GET /pi" ... pause ... "ng HTTP/1.1..."
    recv(8192)  →  "GET /pi"                    ✗ 400 Bad Request

That is the contract, not an accident. Small requests from ordinary
clients fit in one segment.

There is no keep-alive either. Every response carries Connection: close
and the socket is closed right after the write.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ACCEPTED ──► READING ──► PARSING ──► DISPATCHING ──► WRITING ──► CLOSED
                    │            │                          ▲           ▲
                    │            └── parse error ───────────┘           │
                    │                (400 Bad Request)                  │
                    │                                                   │
                    └── timeout / read error / EOF ─────────────────────┘
                        (no response)

Any unexpected exception jumps straight to CLOSED as well; see
HTTPServer._process_connection for the fault barrier.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from ..errors import TransportError


logger = logging.getLogger(__name__)

# Upper bound on how long close() spends draining unread client data
DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    """Lifecycle states of a single connection."""
    ACCEPTED = "accepted"        # Just returned from accept()
    READING = "reading"          # Waiting on the single recv()
    PARSING = "parsing"          # Turning bytes into an HttpMessage
    DISPATCHING = "dispatching"  # Handler is running
    WRITING = "writing"          # Sending the response
    CLOSED = "closed"            # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket returned by accept().
        address: Client's (ip, port) tuple.
        id: Short random identifier used as a log prefix.
        state: Current ConnectionState.
        created_at: When the connection was accepted.
        buffer_size: Maximum bytes taken by the single read.
        read_timeout: Read deadline in seconds.
    """

    # Required parameters
    socket: socket.socket
    address: tuple

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    # Configuration (passed from ServerConfig)
    buffer_size: int = 8192
    read_timeout: float = 5.0

    def __post_init__(self):
        # Blocking mode; timeouts are set per operation
        self.socket.setblocking(True)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Client IP address ("" for non-IP sockets such as socketpairs)."""
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Perform the one and only read on this connection.

        The deadline is armed BEFORE recv(), so a client that connects and
        then goes quiet costs at most ``read_timeout`` seconds of a worker
        thread.

        Returns:
            The bytes received (1 to buffer_size of them), or None if the
            client closed the connection without sending anything.

        Raises:
            TransportError: On deadline expiry or any socket error.
        """
        self.state = ConnectionState.READING
        self.socket.settimeout(self.read_timeout)

        try:
            data = self.socket.recv(self.buffer_size)
        except socket.timeout as e:
            raise TransportError(f"Read timed out after {self.read_timeout}s") from e
        except OSError as e:
            raise TransportError(f"Read failed: {e}") from e

        if not data:
            return None
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send the full response with a single sendall().

        No write deadline is set: a client that stops reading can block
        this call. Failures are logged and reported, never retried.

        Returns:
            True if everything was sent, False if the socket failed.
        """
        self.state = ConnectionState.WRITING
        self.socket.settimeout(None)

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        1. shutdown(SHUT_WR) sends FIN: "no more data from us".
        2. Drain anything the client sent that we never read (oversized
           requests). Closing with unread data makes the kernel send RST,
           which can destroy the response before the client reads it.
        3. close() releases the file descriptor.

        Every step tolerates a socket that is already dead.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.2f}ms")

    def _drain(self):
        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Includes socket.timeout; we're closing anyway

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Always close; never suppress the exception."""
        self.close()
        return False
