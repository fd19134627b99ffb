"""
Unit tests for access logging.
"""

import json
import logging

from tcphttp.access_log import RequestLog, log_request


def make_entry(status_code: int = 200) -> RequestLog:
    return RequestLog(
        connection_id="abcd1234",
        client_ip="127.0.0.1",
        method="GET",
        path="/ping",
        status_code=status_code,
        content_length=4,
        duration_ms=0.3141,
        timestamp="18/Oct/2026:12:00:00 +0000",
    )


class TestRequestLog:

    def test_text_format(self):
        assert make_entry().to_text() == (
            '127.0.0.1 - - [18/Oct/2026:12:00:00 +0000] "GET /ping" 200 4 0.31ms'
        )

    def test_dict_rounds_duration(self):
        data = make_entry().to_dict()

        assert data["duration_ms"] == 0.31
        assert data["connection_id"] == "abcd1234"


class TestLogRequest:

    def test_text(self, caplog):
        with caplog.at_level(logging.INFO, logger="tcphttp.access"):
            log_request(make_entry())

        record = caplog.records[-1]
        assert record.name == "tcphttp.access"
        assert record.levelno == logging.INFO
        assert '"GET /ping" 200' in record.getMessage()

    def test_json(self, caplog):
        with caplog.at_level(logging.INFO, logger="tcphttp.access"):
            log_request(make_entry(), log_format="json")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["status_code"] == 200
        assert data["path"] == "/ping"

    def test_not_found_is_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="tcphttp.access"):
            log_request(make_entry(404))

        assert caplog.records[-1].levelno == logging.INFO

    def test_server_error_is_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="tcphttp.access"):
            log_request(make_entry(500))

        assert caplog.records[-1].levelno == logging.WARNING
