"""
Unit tests for HTTP request parsing.
"""

import pytest

from tcphttp.errors import ErrorKind, ParseError
from tcphttp.http.request import HttpMessage, parse_request


class TestParseRequest:
    """Tests for parse_request()."""

    def test_parse_simple_get(self):
        """A bare GET with Host parses with an empty body."""
        raw = b"GET /api/users HTTP/1.1\r\nHost: example.com\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.protocol == "HTTP/1.1"
        assert request.host == "example.com"
        assert request.raw_body == ""

    def test_parse_post_with_body(self):
        """Body is everything after the blank line, verbatim."""
        raw = (
            b"POST /api/users HTTP/1.1\r\n"
            b"Host: api.example.com\r\n"
            b"Content-Type: application/json\r\n"
            b"\r\n"
            b'{"name":"John"}'
        )
        request = parse_request(raw)

        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert request.raw_body == '{"name":"John"}'

    def test_parse_headers(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.host == "localhost:3030"
        assert request.headers["User-Agent"] == "pytest"
        assert request.headers["Accept"] == "application/json"

    def test_path_kept_verbatim(self, sample_get_request: bytes):
        """No query splitting or decoding."""
        request = parse_request(sample_get_request)
        assert request.path == "/api/users?page=1&limit=10"

        request = parse_request(b"GET /search?q=hello%20world HTTP/1.1\r\nHost: t\r\n\r\n")
        assert request.path == "/search?q=hello%20world"

    def test_content_length_ignored(self, sample_post_request: bytes):
        """The body is the rest of the buffer, whatever Content-Length says."""
        raw = sample_post_request + b"trailing"
        request = parse_request(raw)

        assert request.raw_body.endswith("trailing")

    def test_length_limits_buffer(self):
        """Only the first ``length`` bytes count."""
        raw = b"GET / HTTP/1.1\r\nHost: x\r\n\r\nbody" + b"\x00" * 100
        request = parse_request(raw, length=len(raw) - 100)

        assert request.raw_body == "body"

    def test_negative_length_rejected(self):
        with pytest.raises(ValueError):
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n", length=-1)

    def test_no_blank_line_means_no_body(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x")

        assert request.host == "x"
        assert request.raw_body == ""

    def test_undecodable_bytes_replaced(self):
        request = parse_request(b"POST / HTTP/1.1\r\nHost: x\r\n\r\n\xff\xfe")
        assert request.raw_body == "\ufffd\ufffd"


class TestHeaderParsing:
    """Header line edge cases."""

    def test_value_trimmed(self):
        raw = b"GET / HTTP/1.1\r\nHost: x\r\nX-Custom-Header:   value with spaces   \r\n\r\n"
        request = parse_request(raw)

        assert request.headers["X-Custom-Header"] == "value with spaces"

    def test_name_trimmed(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n  X-Name  : v\r\n\r\n")
        assert request.headers["X-Name"] == "v"

    def test_last_duplicate_wins(self):
        raw = b"GET / HTTP/1.1\r\nHost: x\r\nX-A: first\r\nX-A: second\r\n\r\n"
        request = parse_request(raw)

        assert request.headers["X-A"] == "second"

    def test_colon_in_value(self):
        """Split happens on the first colon only."""
        raw = b"GET / HTTP/1.1\r\nHost: localhost:3030\r\nX-Time: 12:30:45\r\n\r\n"
        request = parse_request(raw)

        assert request.host == "localhost:3030"
        assert request.headers["X-Time"] == "12:30:45"

    def test_empty_value_allowed(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x\r\nX-Empty:\r\n\r\n")
        assert request.headers["X-Empty"] == ""

    def test_header_names_case_sensitive(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x\r\ncontent-type: a\r\n\r\n")

        assert request.get_header("content-type") == "a"
        assert request.get_header("Content-Type") == ""
        assert request.get_header("Content-Type", "none") == "none"

    def test_header_without_colon(self):
        raw = b"GET / HTTP/1.1\r\nHost: x\r\nInvalidHeaderNoColon\r\n\r\n"

        with pytest.raises(ParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.kind == ErrorKind.INVALID_HEADER

    def test_folded_header_rejected(self):
        """Continuation lines are not supported."""
        raw = b"GET / HTTP/1.1\r\nHost: x\r\nX-Long: part one\r\n part two\r\n\r\n"

        with pytest.raises(ParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.kind == ErrorKind.INVALID_HEADER


class TestMissingHost:

    def test_no_headers_at_all(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert exc_info.value.kind == ErrorKind.MISSING_HOST

    def test_other_headers_present(self):
        raw = b"GET / HTTP/1.1\r\nUser-Agent: test\r\nAccept: */*\r\n\r\n"

        with pytest.raises(ParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.kind == ErrorKind.MISSING_HOST

    def test_lowercase_host_does_not_count(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nhost: x\r\n\r\n")

        assert exc_info.value.kind == ErrorKind.MISSING_HOST

    def test_empty_host_value(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost:   \r\n\r\n")

        assert exc_info.value.kind == ErrorKind.MISSING_HOST


class TestInvalidInput:

    def test_empty_input(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"")

        assert exc_info.value.kind == ErrorKind.EMPTY_REQUEST

    def test_zero_length(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n", length=0)

        assert exc_info.value.kind == ErrorKind.EMPTY_REQUEST

    def test_only_separator(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"\r\n\r\n")

        assert exc_info.value.kind == ErrorKind.EMPTY_REQUEST

    @pytest.mark.parametrize("start_line", [
        b"GET",
        b"GET /",
        b"GET / HTTP/1.1 extra",
        b"GET  / HTTP/1.1",
        b"GET /my path HTTP/1.1",
        b" GET / HTTP/1.1",
    ])
    def test_invalid_start_line(self, start_line: bytes):
        with pytest.raises(ParseError) as exc_info:
            parse_request(start_line + b"\r\nHost: x\r\n\r\n")

        assert exc_info.value.kind == ErrorKind.INVALID_START_LINE

    def test_parse_errors_map_to_400(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_any_method_token_accepted(self):
        """Methods are not validated; routing decides."""
        request = parse_request(b"BREW /pot HTCPCP/1.0\r\nHost: x\r\n\r\n")

        assert request.method == "BREW"
        assert request.protocol == "HTCPCP/1.0"


class TestHttpMessage:

    def test_immutable(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        with pytest.raises(AttributeError):
            request.path = "/other"

        with pytest.raises(TypeError):
            request.headers["X-New"] = "v"

    def test_headers_copied_from_input(self):
        headers = {"Host": "x"}
        message = HttpMessage("GET", "/", "HTTP/1.1", headers=headers, host="x")
        headers["Host"] = "changed"

        assert message.headers["Host"] == "x"
