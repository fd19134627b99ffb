"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tcphttp import HTTPServer, ServerConfig
from tcphttp.http import HandlerContext, HandlerRegistry


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:3030\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    head = (
        b"POST /api/users HTTP/1.1\r\n"
        + b"Host: localhost:3030\r\n"
        + b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    )
    return head + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        read_timeout=2.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes to 127.0.0.1:port and read until the server closes."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        if data:
            s.sendall(data)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def split_response(raw: bytes):
    """Split a raw response into (status_line, headers dict, body bytes)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


class TestServer:
    """Test server helper that runs in a background thread."""

    # Not a test class, despite the name
    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self.error = None
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline:
            if self.server.wait_until_ready(0.05):
                return
            if not self._thread.is_alive():
                break

        raise RuntimeError(f"Server failed to start: {self.error!r}")

    def _serve(self):
        try:
            self.server.serve()
        except Exception as e:
            self.error = e

    def request(self, data: bytes, timeout: float = 5.0) -> bytes:
        return send_raw(self.port, data, timeout=timeout)

    def stop(self):
        """Stop the server and wait for the accept loop to exit."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def stopped(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()


@pytest.fixture
def registry() -> HandlerRegistry:
    """Registry with a few handlers covering success and failure."""
    registry = HandlerRegistry()

    @registry.get("/ping")
    def ping(ctx: HandlerContext):
        ctx.response.set_body("pong")

    @registry.post("/echo")
    def echo(ctx: HandlerContext):
        ctx.response.set_body(ctx.body, ctx.headers.get("Content-Type"))

    @registry.get("/boom")
    def boom(ctx: HandlerContext):
        ctx.response.set_header("X-Trace", "abc")
        raise RuntimeError("kaboom")

    return registry


@pytest.fixture
def test_server(config: ServerConfig, registry: HandlerRegistry) -> Generator[TestServer, None, None]:
    """A running server on an ephemeral port."""
    test_srv = TestServer(HTTPServer(config, registry))
    test_srv.start()

    yield test_srv

    test_srv.stop()
