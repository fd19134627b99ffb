"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the bytes of a single socket read into an HttpMessage. Pure: no I/O,
no logging, no state between calls.

=============================================================================
WHAT WE ACCEPT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ HEAD SECTION ─────────────────────────────────────────────────┐ │
    │  │                                                                 │ │
    │  │    POST /api/users?x=1 HTTP/1.1\r\n      ← start-line           │ │
    │  │    ─┬── ──────┬─────── ───┬────                                 │ │
    │  │     │         │           │                                     │ │
    │  │   method    path      protocol   (split on SINGLE spaces)       │ │
    │  │                                                                 │ │
    │  │    Host: api.example.com\r\n             ← mandatory            │ │
    │  │    Content-Type: application/json\r\n                           │ │
    │  │                                                                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │    \r\n                                   ← blank line separator    │
    │                                                                      │
    │  ┌─ BODY ─────────────────────────────────────────────────────────┐ │
    │  │    {"name":"John"}                    ← rest of the buffer      │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DELIBERATE SIMPLIFICATIONS
=============================================================================

1. The path is kept verbatim. No query splitting, no percent-decoding.
   A path containing a literal space produces 4 start-line tokens and is
   rejected.

2. Header names are case-SENSITIVE. "Host" is required; "host" does not
   count. Values are trimmed, names are trimmed, last duplicate wins.

3. Header folding (a continuation line starting with whitespace) is NOT
   supported. Such a line has no colon and fails as INVALID_HEADER.
   Duplicate Host headers are not detected either: the last one wins
   like any other header.

4. Content-Length is ignored. The body is whatever followed the blank
   line in the buffer we were given.

=============================================================================
FAILURE KINDS
=============================================================================

    EMPTY_REQUEST       nothing before the blank line (or no data at all)
    INVALID_START_LINE  start-line isn't exactly 3 non-empty tokens
    INVALID_HEADER      a non-empty header line without a ':'
    MISSING_HOST        no (or empty) Host header

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..errors import ErrorKind, ParseError


HEAD_BODY_SEPARATOR = "\r\n\r\n"
LINE_SEPARATOR = "\r\n"


@dataclass(frozen=True)
class HttpMessage:
    """
    A parsed HTTP request.

    Built once per connection by parse_request() and never modified:
    the dataclass is frozen and ``headers`` is a read-only mapping view.

    Attributes:
        method:   Start-line token 1, e.g. "GET".
        path:     Start-line token 2, query string included, e.g. "/a?b=1".
        protocol: Start-line token 3, e.g. "HTTP/1.1".
        headers:  Header name → trimmed value (names case-sensitive).
        host:     Value of the Host header.
        raw_body: Everything after the blank line, as text.
    """

    method: str
    path: str
    protocol: str
    headers: Mapping[str, str] = field(default_factory=dict)
    host: str = ""
    raw_body: str = ""

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def get_header(self, name: str, default: str = "") -> str:
        """Exact-name header lookup."""
        return self.headers.get(name, default)


def parse_request(buffer: bytes, length: Optional[int] = None) -> HttpMessage:
    """
    Parse the first ``length`` bytes of ``buffer`` into an HttpMessage.

    Args:
        buffer: Raw bytes from the socket (may be a larger, partly unused
                read buffer).
        length: Number of valid bytes in ``buffer``. Defaults to all of it.

    Returns:
        The parsed request.

    Raises:
        ParseError: With ``kind`` set to one of the parse ErrorKinds.
        ValueError: If ``length`` is negative.
    """
    if length is None:
        length = len(buffer)
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")

    # ─────────────────────────────────────────────────────────────────────
    # STEP 1: head / body split
    # ─────────────────────────────────────────────────────────────────────
    data = bytes(buffer[:length]).decode("utf-8", errors="replace")

    head, separator, body = data.partition(HEAD_BODY_SEPARATOR)
    if not head:
        raise ParseError(ErrorKind.EMPTY_REQUEST, "Empty request")

    # ─────────────────────────────────────────────────────────────────────
    # STEP 2: lines
    # ─────────────────────────────────────────────────────────────────────
    lines = head.split(LINE_SEPARATOR)
    if not lines:
        raise ParseError(ErrorKind.EMPTY_REQUEST, "Empty request")

    # ─────────────────────────────────────────────────────────────────────
    # STEP 3: start-line
    # ─────────────────────────────────────────────────────────────────────
    method, path, protocol = _parse_start_line(lines[0])

    # ─────────────────────────────────────────────────────────────────────
    # STEP 4: headers
    # ─────────────────────────────────────────────────────────────────────
    headers = _parse_headers(lines[1:])

    # ─────────────────────────────────────────────────────────────────────
    # STEP 5: Host is mandatory
    # ─────────────────────────────────────────────────────────────────────
    host = headers.get("Host")
    if not host:
        raise ParseError(ErrorKind.MISSING_HOST, "Missing Host header")

    # ─────────────────────────────────────────────────────────────────────
    # STEP 6: body is the rest of the buffer, verbatim
    # ─────────────────────────────────────────────────────────────────────
    return HttpMessage(
        method=method,
        path=path,
        protocol=protocol,
        headers=headers,
        host=host,
        raw_body=body if separator else "",
    )


def _parse_start_line(line: str) -> Tuple[str, str, str]:
    """
    Split "METHOD SP PATH SP PROTOCOL" on single spaces.

    str.split(" ") rather than str.split(): two consecutive spaces must
    produce an extra (empty) token and fail, not be collapsed.
    """
    tokens = line.split(" ")
    if len(tokens) != 3 or not all(tokens):
        raise ParseError(ErrorKind.INVALID_START_LINE, f"Invalid start line: {line!r}")

    method, path, protocol = tokens
    return method, path, protocol


def _parse_headers(lines: list) -> dict:
    """
    Parse "Name: Value" lines.

    Empty lines are skipped. Splitting happens on the FIRST colon only, so
    "X-Time: 12:30:45" keeps its value intact.
    """
    headers = {}

    for line in lines:
        if not line:
            continue

        name, colon, value = line.partition(":")
        if not colon:
            raise ParseError(ErrorKind.INVALID_HEADER, f"Invalid header: {line!r}")

        # Later duplicates overwrite earlier ones
        headers[name.strip()] = value.strip()

    return headers
