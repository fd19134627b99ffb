"""
=============================================================================
HTTP RESPONSE MODEL AND SERIALIZER
=============================================================================

A Response is a small mutable container a handler fills in. serialize()
turns it into wire bytes.

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

    Response()            handler mutates          serialize()
    200 / "OK"   ─────►   status, headers,  ─────►  b"HTTP/1.1 200 OK\r\n..."
    text/plain            body                      │
        │                                           ▼
        └── or an error helper:                 sendall() once
            bad_request()            400
            not_found()              404
            internal_server_error()  500

=============================================================================
MANAGED HEADERS
=============================================================================

Three headers are always recomputed at serialization time, whatever the
handler put there:

    Server:          fixed implementation identifier
    Content-Length:  UTF-8 byte length of the body
    Connection:      close     (this server never keeps a connection alive)

Any handler-set variant of those names (in any letter case) is dropped
first, so the wire never carries two Content-Length headers.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .status_codes import HTTPStatus, reason_phrase


DEFAULT_SERVER_NAME = "Py-TCP-HTTP"
DEFAULT_PROTOCOL = "HTTP/1.1"

MANAGED_HEADERS = ("Server", "Content-Length", "Connection")


def _default_headers() -> Dict[str, str]:
    return {"Content-Type": "text/plain"}


@dataclass
class Response:
    """
    An outgoing HTTP response.

    Defaults to ``200 OK`` with ``Content-Type: text/plain`` and body
    ``"OK"``, so a handler that does nothing still answers sensibly.

    Attributes:
        status_code: Any integer; unknown codes serialize with an empty
                     reason phrase.
        headers:     Header name → value. Insertion order is kept on the
                     wire but carries no meaning.
        body:        Body text (encoded as UTF-8 when serialized).
    """

    status_code: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=_default_headers)
    body: str = "OK"

    # =========================================================================
    # ERROR HELPERS
    # =========================================================================
    # These only touch status and body. Headers the handler already set are
    # left alone.

    def bad_request(self) -> "Response":
        """Turn this into a 400."""
        return self._set_error(HTTPStatus.BAD_REQUEST)

    def not_found(self) -> "Response":
        """Turn this into a 404."""
        return self._set_error(HTTPStatus.NOT_FOUND)

    def internal_server_error(self) -> "Response":
        """Turn this into a 500."""
        return self._set_error(HTTPStatus.INTERNAL_SERVER_ERROR)

    def _set_error(self, status: HTTPStatus) -> "Response":
        self.status_code = status
        self.body = status.phrase
        return self

    # =========================================================================
    # CONVENIENCE SETTERS (chainable)
    # =========================================================================

    def set_header(self, name: str, value: str) -> "Response":
        """Set a header, returning self for chaining."""
        self.headers[name] = value
        return self

    def set_status(self, status_code: int) -> "Response":
        """Set the status code, returning self for chaining."""
        self.status_code = status_code
        return self

    def set_body(self, body: str, content_type: Optional[str] = None) -> "Response":
        """
        Set the body, optionally replacing Content-Type at the same time.

        Example:
            ctx.response.set_body('{"ok": true}', "application/json")
        """
        self.body = body
        if content_type:
            self.headers["Content-Type"] = content_type
        return self

    @property
    def status_line(self) -> str:
        """
        "HTTP/1.1 200 OK" (without CRLF).

        Unknown codes give a trailing space and no phrase: "HTTP/1.1 799 ".
        """
        return f"{DEFAULT_PROTOCOL} {int(self.status_code)} {reason_phrase(self.status_code)}"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """Shortcut for serialize(self, server_name)."""
        return serialize(self, server_name=server_name)


def serialize(
    response: Response,
    server_name: str = DEFAULT_SERVER_NAME,
    protocol: str = DEFAULT_PROTOCOL,
) -> bytes:
    """
    Serialize a Response to wire-format bytes.

    =====================================================================
    SERIALIZATION FORMAT
    =====================================================================

        HTTP/1.1 200 OK\r\n              ← status line
        Content-Type: text/plain\r\n     ← handler / default headers
        Server: Py-TCP-HTTP\r\n          ← managed
        Content-Length: 2\r\n            ← managed
        Connection: close\r\n            ← managed
        \r\n                             ← blank line
        OK                               ← body bytes

    =====================================================================

    Works on a copy of the headers; ``response`` itself is not modified.
    Never raises for odd status codes.

    Args:
        response: The response to serialize.
        server_name: Value for the Server header.
        protocol: Protocol token for the status line.

    Returns:
        Complete response bytes ready for socket.sendall().
    """
    body_bytes = response.body.encode("utf-8")

    # Drop handler-set copies of managed headers, whatever their case
    managed = {name.lower() for name in MANAGED_HEADERS}
    headers = {
        name: value
        for name, value in response.headers.items()
        if name.lower() not in managed
    }

    headers["Server"] = server_name
    headers["Content-Length"] = str(len(body_bytes))
    headers["Connection"] = "close"

    code = int(response.status_code)
    lines = [f"{protocol} {code} {reason_phrase(code)}"]
    for name, value in headers.items():
        lines.append(f"{name}: {value}")

    # Empty line separates head from body
    lines.append("")

    head = "\r\n".join(lines).encode("utf-8") + b"\r\n"
    return head + body_bytes
