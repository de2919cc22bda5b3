"""
=============================================================================
HTTP PROTOCOL PIECES
=============================================================================

Just enough HTTP/1.1 for the loopback redirect listener:

    request.py   bytes → HTTPRequest (method, path, ordered headers)
    response.py  HTTPResponse + the script-injecting document builder

This is NOT a general purpose HTTP implementation. The listener answers
every request with "200 OK" and never reads a request body.

=============================================================================
"""

from .request import HTTPRequest, HTTPParseError, RequestParser, parse_request
from .response import (
    CALLBACK_PATH,
    FULL_URL_HEADER,
    HTTPResponse,
    build_document,
    callback_script,
    capture_page,
    ok,
)

__all__ = [
    # Request
    "HTTPRequest",
    "HTTPParseError",
    "RequestParser",
    "parse_request",
    # Response
    "CALLBACK_PATH",
    "FULL_URL_HEADER",
    "HTTPResponse",
    "build_document",
    "callback_script",
    "capture_page",
    "ok",
]
