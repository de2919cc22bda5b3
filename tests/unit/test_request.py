"""
Unit tests for raw request parsing.
"""

import pytest

from oauthlistener.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""
    
    def test_parse_simple_get(self, first_phase_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(first_phase_request)
        
        assert request.method == "GET"
        assert request.path == "/"
        assert request.version == "HTTP/1.1"
        assert request.raw == first_phase_request
    
    def test_headers_keep_order_and_case(self, callback_request: bytes):
        """Test that header names are kept exactly as received, in order."""
        request = parse_request(callback_request)
        
        assert request.headers == [
            ("Host", "127.0.0.1:53682"),
            ("Full-Url", "http://127.0.0.1:9999/callback#token=abc"),
        ]
    
    def test_query_string_is_not_part_of_path(self):
        """Test that the query string is stripped from the path."""
        request = parse_request(b"GET /exit?now=1 HTTP/1.1\r\n\r\n")

        assert request.path == "/exit"

    def test_target_is_kept_undecoded(self):
        """Test that the request target is kept exactly as received."""
        request = parse_request(b"GET /%65xit?now=1 HTTP/1.1\r\n\r\n")

        assert request.target == "/%65xit?now=1"
        assert request.path == "/exit"

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        request = parse_request(b"GET /exit HTTP/1.1\r\n\r\n")
        
        assert request.method == "GET"
        assert request.path == "/exit"
        assert request.headers == []
    
    def test_truncated_headers_keep_complete_lines(self):
        """Test that a request cut off mid-header keeps the complete lines."""
        raw = b"GET /cb HTTP/1.1\r\nHost: localhost:1234\r\nFull-Url: http://loc"
        request = parse_request(raw)
        
        assert request.path == "/cb"
        assert request.headers == [("Host", "localhost:1234")]
        assert request.find_header("Full-Url") is None
    
    def test_request_line_only_with_crlf(self):
        """Test a request line terminated by a single CRLF."""
        request = parse_request(b"GET / HTTP/1.0\r\n")
        
        assert request.path == "/"
        assert request.version == "HTTP/1.0"
    
    def test_header_continuation(self):
        """Test obsolete folded header lines."""
        raw = b"GET / HTTP/1.1\r\nX-Long: first\r\n  second\r\n\r\n"
        request = parse_request(raw)
        
        assert request.get_header("X-Long") == "first second"
    
    def test_malformed_header_lines_skipped(self):
        """Test lenient parsing of broken header lines."""
        raw = b"GET / HTTP/1.1\r\nnot a header\r\nHost: localhost\r\n\r\n"
        request = parse_request(raw)
        
        assert request.headers == [("Host", "localhost")]
    
    @pytest.mark.parametrize("raw", [
        b"",
        b"\x00\xff\x10garbage",
        b"GET / HTTP/1.1",
        b"GET\r\nHost: test\r\n\r\n",
        b"INVALID /path HTTP/1.1\r\n\r\n",
        b"GET / HTTP/2.0\r\n\r\n",
        b"get / HTTP/1.1\r\n\r\n",
    ])
    def test_unparseable_input(self, raw: bytes):
        """Test that garbage and truncated requests raise HTTPParseError."""
        with pytest.raises(HTTPParseError):
            parse_request(raw)
    
    def test_invalid_utf8_is_tolerated(self):
        """Test that undecodable header bytes do not break parsing."""
        raw = b"GET / HTTP/1.1\r\nX-Bin: \xff\xfe\r\n\r\n"
        request = parse_request(raw)
        
        assert request.path == "/"
        assert len(request.headers) == 1


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""
    
    def test_get_header_is_case_insensitive(self):
        """Test get_header lookup ignores case."""
        request = HTTPRequest(method="GET", path="/", headers=[("HOST", "localhost")])
        
        assert request.get_header("host") == "localhost"
        assert request.host == "localhost"
    
    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")
        
        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"
    
    def test_find_header_is_case_sensitive(self):
        """Test that find_header only matches the exact name."""
        request = HTTPRequest(
            method="GET",
            path="/cb",
            headers=[("full-url", "http://a"), ("Full-Url", "http://b")],
        )
        
        assert request.find_header("Full-Url") == "http://b"
        assert request.find_header("FULL-URL") is None
