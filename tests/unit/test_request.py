"""
Unit tests for HTTP request parsing.
"""

import pytest

from splitstack.http.request import HTTPParseError, HTTPRequest, RequestParser


def parse(raw: bytes, **kwargs) -> HTTPRequest:
    return RequestParser(**kwargs).parse(raw, ("127.0.0.1", 12345))


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Request line and peer address are captured."""
        request = parse(sample_get_request)

        assert request.method == "GET"
        assert request.path == "/api/data"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Headers are parsed and exposed through properties."""
        request = parse(sample_get_request)

        assert request.host == "localhost:5000"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Query string is split into lists of values."""
        request = parse(sample_get_request)

        assert request.get_query("page") == "1"
        assert request.get_query("limit") == "10"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_keeps_raw_body(self, sample_post_request: bytes):
        """The body is left for the body parser stage."""
        request = parse(sample_post_request)

        assert request.method == "POST"
        assert request.content_type == "application/json"
        assert request.body == b'{"name": "Widget", "qty": 3}'
        assert request.parsed_body is None
        assert request.origin == "http://localhost:3000"
        assert request.is_keep_alive is False

    def test_parse_url_encoded_path(self):
        """Percent-encoding is decoded in path and query."""
        request = parse(b"GET /search%20me?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n")

        assert request.path == "/search me"
        assert request.get_query("q") == "hello world"

    def test_parse_invalid_method(self):
        """Unknown methods are rejected with 405."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"BREW /pot HTTP/1.1\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """A malformed request line is a 400."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_missing_terminator(self):
        """Headers without the blank line are incomplete."""
        with pytest.raises(HTTPParseError):
            parse(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_malformed_header_line(self):
        """A header line without a colon is rejected."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET / HTTP/1.1\r\nHost test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_path_traversal_blocked(self):
        """'..' segments never reach handlers."""
        with pytest.raises(HTTPParseError):
            parse(b"GET /../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n")

    def test_parse_request_too_large(self):
        """Oversized input is a 413."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 100\r\n\r\n" + b"x" * 100

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw, max_request_size=50)

        assert exc_info.value.status_code == 413

    def test_unsupported_http_version(self):
        """Only HTTP/1.0 and HTTP/1.1 are spoken."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET / HTTP/2.0\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_http_10_defaults_to_close(self):
        """HTTP/1.0 closes unless keep-alive is requested."""
        assert parse(b"GET / HTTP/1.0\r\n\r\n").is_keep_alive is False
        assert parse(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n").is_keep_alive is True

    def test_invalid_content_length(self):
        """Non-numeric and negative Content-Length are rejected."""
        for value in (b"abc", b"-1"):
            with pytest.raises(HTTPParseError):
                parse(b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n")

    def test_short_body_rejected(self):
        """Fewer body bytes than declared is an error."""
        with pytest.raises(HTTPParseError):
            parse(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

    def test_body_truncated_to_content_length(self):
        """Bytes past Content-Length are not part of the body."""
        request = parse(b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef")

        assert request.body == b"abc"

    def test_path_is_canonical(self):
        """Encoded and repeated slashes collapse to one form."""
        for target in (b"/%2Fapi/health", b"//api//health/", b"/api/health/?x=1"):
            request = parse(b"GET " + target + b" HTTP/1.1\r\nHost: test\r\n\r\n")

            assert request.path == "/api/health"

    def test_target_without_leading_slash_rejected(self):
        """Only origin-form request targets are accepted."""
        for target in (b"api/health", b"*", b"http://test/api/health"):
            with pytest.raises(HTTPParseError) as exc_info:
                parse(b"GET " + target + b" HTTP/1.1\r\nHost: test\r\n\r\n")

            assert exc_info.value.status_code == 400

    def test_chunked_body_not_implemented(self):
        """Transfer-Encoding framing is refused instead of read as empty."""
        raw = (
            b"POST /api/data HTTP/1.1\r\nHost: test\r\n"
            b"Transfer-Encoding: chunked\r\n\r\n"
            b"c\r\n{\"name\":\"x\"}\r\n0\r\n\r\n"
        )

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 501

    def test_transfer_encoding_with_content_length_rejected(self):
        """Conflicting framing headers are a 400."""
        raw = (
            b"POST /api/data HTTP/1.1\r\nHost: test\r\n"
            b"Transfer-Encoding: chunked\r\nContent-Length: 3\r\n\r\nabc"
        )

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 400

    def test_repeated_headers_are_joined(self):
        """Repeated fields become one comma-separated value."""
        request = parse(b"GET / HTTP/1.1\r\nAccept: a\r\naccept: b\r\n\r\n")

        assert request.headers["Accept"] == "a, b"

    def test_trust_proxy_is_propagated(self):
        """The parser stamps its proxy policy onto every request."""
        raw = b"GET / HTTP/1.1\r\nX-Forwarded-For: 198.51.100.1, 10.0.0.1\r\n\r\n"

        assert parse(raw).client_ip == "127.0.0.1"
        assert parse(raw, trust_proxy=True).client_ip == "198.51.100.1"


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_get_header_default(self):
        """Missing headers fall back to the default."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "fallback") == "fallback"

    def test_query_list(self):
        """All values of a repeated query parameter are kept."""
        request = HTTPRequest(method="GET", path="/", query_params={"tag": ["a", "b"]})

        assert request.get_query_list("tag") == ["a", "b"]
        assert request.get_query_list("none") == []

    def test_bearer_token(self):
        """Only the Bearer scheme yields a token."""
        assert HTTPRequest("GET", "/", headers={"Authorization": "Bearer abc"}).bearer_token == "abc"
        assert HTTPRequest("GET", "/", headers={"Authorization": "Basic abc"}).bearer_token is None
        assert HTTPRequest("GET", "/").bearer_token is None

    def test_preflight_detection(self):
        """Preflight needs OPTIONS, Origin and Access-Control-Request-Method."""
        headers = {"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"}

        assert HTTPRequest("OPTIONS", "/api/data", headers=headers).is_preflight is True
        assert HTTPRequest("OPTIONS", "/api/data", headers={"Origin": "x"}).is_preflight is False
        assert HTTPRequest("GET", "/api/data", headers=headers).is_preflight is False

    def test_charset(self):
        """Charset comes from the Content-Type parameters."""
        request = HTTPRequest("POST", "/", headers={"Content-Type": "text/plain; charset=latin-1"})

        assert request.content_type == "text/plain"
        assert request.charset == "latin-1"
        assert HTTPRequest("POST", "/").charset == "utf-8"
