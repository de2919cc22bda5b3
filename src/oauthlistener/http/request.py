"""
=============================================================================
RAW REQUEST PARSER
=============================================================================

Turns the bytes read from one loopback connection into a minimal HTTP
request view: method, path and the header (name, value) pairs in the order
they were received.

=============================================================================
WHAT WE ACTUALLY NEED FROM A REQUEST
=============================================================================

    GET /cb HTTP/1.1\r\n                   ← method + path
    Host: localhost:53682\r\n              ← which loopback name the browser used
    Full-Url: http://.../cb#token=abc\r\n  ← second phase of the capture
    \r\n

Nothing else matters to the listener. Bodies are never read, and we never
need more than one buffer's worth of bytes.

=============================================================================
TOLERANCE
=============================================================================

The listener reads ONE bounded chunk per connection, so the bytes handed to
the parser may be:

    - a complete request              → parsed normally
    - cut off in the middle of headers → complete lines are kept,
                                         the truncated last line is dropped
    - random garbage / empty          → HTTPParseError

HTTPParseError is never fatal: the listener drops the connection and keeps
accepting.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when the received bytes are not an HTTP request.

    The listener logs it and drops the connection; nothing is sent back.
    """


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Headers are kept as an ordered list of (name, value) pairs exactly as
    received. Names are NOT normalized: the capture protocol matches the
    ``Full-Url`` header case-sensitively.
    """

    method: str                          # GET, POST, ...
    path: str                            # Decoded path without query string
    target: str = ""                     # Request target exactly as received
    version: str = "HTTP/1.1"            # HTTP version
    headers: list[tuple[str, str]] = field(default_factory=list)
    raw: bytes = field(default=b"", repr=False)

    @property
    def host(self) -> str:
        """Get the Host header value (case-insensitive lookup)."""
        return self.get_header("Host")

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get the first header value, matching the name case-insensitively.

        Args:
            name: Header name (any case)
            default: Value to return if header not found
        """
        wanted = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == wanted:
                return value
        return default

    def find_header(self, name: str) -> Optional[str]:
        """
        Get the first header whose name matches EXACTLY as received.

        Returns:
            The header value, or None if no header has that exact name.
        """
        for header_name, value in self.headers:
            if header_name == name:
                return value
        return None


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$

        ([A-Z]+)      - METHOD (uppercase token)
        ([^ ]+)       - request target
        (HTTP/\\d\\.\\d) - version

    HEADER_PATTERN: ^([^:\\s][^:]*):\\s*(.*)$
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s][^:]*):\s*(.*)$")

    def parse(self, data: bytes) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Bytes read from the connection (possibly truncated).

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If no valid request line can be found.
        """
        if not data:
            raise HTTPParseError("Empty request")

        # ─────────────────────────────────────────────────────────────────
        # Only the header section matters. If the terminator never arrived
        # (short read, buffer full) we work with whatever complete lines
        # we have: the last line may be cut off mid-way, so drop it.
        # ─────────────────────────────────────────────────────────────────
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            complete = data.rfind(b"\r\n")
            if complete == -1:
                raise HTTPParseError("Incomplete request: no complete request line")
            header_bytes = data[:complete]
        else:
            header_bytes = data[:header_end]

        header_section = header_bytes.decode("utf-8", errors="replace")
        lines = header_section.split("\r\n")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # "/cb?x=1" → "/cb"; the undecoded target is kept as well
        return HTTPRequest(
            method=method,
            path=unquote(urlparse(target).path) or "/",
            target=target,
            version=version,
            headers=headers,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse the request line.

        Returns:
            Tuple of (method, target, version)

        Raises:
            HTTPParseError: If line is malformed
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:80]!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}")

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> list[tuple[str, str]]:
        """
        Parse header lines into (name, value) pairs.

        Malformed lines are skipped (lenient parsing). Obsolete line
        folding (a line starting with whitespace) continues the previous
        header's value.
        """
        headers: list[tuple[str, str]] = []

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if headers:
                    name, value = headers[-1]
                    headers[-1] = (name, f"{value} {line.strip()}")
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            headers.append((name.strip(), value.strip()))

        return headers


def parse_request(data: bytes) -> HTTPRequest:
    """
    Convenience function to parse a request in one call.

    Args:
        data: Raw request bytes.

    Returns:
        Parsed HTTPRequest object.
    """
    return RequestParser().parse(data)
