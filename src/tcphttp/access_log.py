"""
Per-response access logging.

One line per response written, on the ``tcphttp.access`` logger so it can
be routed or silenced independently of the server's own diagnostics:

    logging.getLogger("tcphttp.access").setLevel(logging.WARNING)
"""

import json
import logging
import time
from dataclasses import asdict, dataclass


logger = logging.getLogger("tcphttp.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one request/response exchange.

    Requests that failed to parse are logged with method and path "-".
    """

    connection_id: str
    client_ip: str
    method: str
    path: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        """Dictionary form, duration rounded to 2 places."""
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """
        Apache-style line:

            127.0.0.1 - - [18/Oct/2026:12:00:00 +0000] "GET /ping" 200 4 0.31ms
        """
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def log_request(entry: RequestLog, log_format: str = "text") -> None:
    """Emit ``entry``; WARNING for 5xx, INFO otherwise."""
    level = logging.WARNING if entry.status_code >= 500 else logging.INFO
    if log_format == "json":
        logger.log(level, json.dumps(entry.to_dict()))
    else:
        logger.log(level, entry.to_text())


def now_timestamp() -> str:
    """Current local time in access-log format."""
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")
