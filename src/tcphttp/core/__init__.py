"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The socket-level plumbing. Nothing in here parses HTTP.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Creates the TCP listening socket, binds, listens                 │
    │  • Runs the accept() loop on the caller's thread                    │
    │  • Stops on shutdown() or SIGINT/SIGTERM                            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ One Connection per accepted client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Wraps a client socket                                            │
    │  • One bounded read, one write, always closed                       │
    │  • Tracks state (ACCEPTED → READING → ... → CLOSED)                 │
    └─────────────────────────────────────────────────────────────────────┘

Concurrency lives one level up: HTTPServer starts a thread per Connection.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",     # TCP listener and accept loop
    "Connection",       # Client socket wrapper
    "ConnectionState",  # Connection lifecycle states
]
