"""
=============================================================================
RESPONSE SYNTHESIZER
=============================================================================

Builds what the listener sends back to the browser.

=============================================================================
WIRE FORMAT
=============================================================================

The listener only ever answers "200 OK", and only with the headers the
browser strictly needs to find the end of the body:

    HTTP/1.1 200 OK\r\n
    Content-Length: 187\r\n     ← UTF-8 byte length of the body
    \r\n
    <html><head><script>...</script></head><body>...</body></html>

=============================================================================
THE INJECTED SCRIPT
=============================================================================

URL fragments (#access_token=...) never leave the browser. The first page
the browser loads from the listener therefore carries a tiny script that
re-sends the browser's full address to the listener as a header:

    fetch("http://localhost:53682/cb", {headers: {"Full-Url": location.href}})

Where the script goes depends on the caller's template:

    ┌──────────────────────────────┬───────────────────────────────────────┐
    │ Template                     │ Result                                │
    ├──────────────────────────────┼───────────────────────────────────────┤
    │ None                         │ built-in "return to the app" page     │
    │ has <head>                   │ script right after <head>             │
    │ no <head>, has <body>        │ <head>script</head> before <body>     │
    │ neither                      │ <head>script</head> prepended         │
    └──────────────────────────────┴───────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional, Union


STATUS_LINE = "HTTP/1.1 200 OK"

CALLBACK_PATH = "/cb"
FULL_URL_HEADER = "Full-Url"

DEFAULT_BODY = "Please return to the app."

HEAD_TAG = "<head>"
BODY_TAG = "<body>"


@dataclass
class HTTPResponse:
    """
    Represents a response to be sent to the browser.

    Always "200 OK"; Content-Length is computed from the encoded body.
    """

    body: bytes = b""

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """
        Set the response body, encoding strings as UTF-8.

        Returns:
            Self for method chaining
        """
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        Returns:
            Status line, Content-Length, blank line, body.
        """
        head = f"{STATUS_LINE}\r\nContent-Length: {len(self.body)}\r\n\r\n"
        return head.encode("ascii") + self.body


def ok(body: Union[str, bytes] = "") -> HTTPResponse:
    """Create a plain 200 OK response."""
    return HTTPResponse().set_body(body)


def callback_script(host: str, port: int) -> str:
    """
    Build the script that performs the second phase of the capture.

    Args:
        host: "localhost" or "127.0.0.1", whichever the browser used.
        port: The listener's port.
    """
    return (
        "<script>"
        f'fetch("http://{host}:{port}{CALLBACK_PATH}", '
        f'{{headers: {{"{FULL_URL_HEADER}": window.location.href}}}});'
        "</script>"
    )


def build_document(template: Optional[str], script: str) -> str:
    """
    Merge the script into the caller's HTML template.

    Args:
        template: Caller supplied HTML, or None for the built-in page.
        script: A complete <script>...</script> element.

    Returns:
        The HTML document to send.
    """
    if template is None:
        return f"<html><head>{script}</head><body>{DEFAULT_BODY}</body></html>"

    if HEAD_TAG in template:
        return template.replace(HEAD_TAG, HEAD_TAG + script, 1)

    head = f"{HEAD_TAG}{script}</head>"
    if BODY_TAG in template:
        return template.replace(BODY_TAG, head + BODY_TAG, 1)

    return head + template


def capture_page(template: Optional[str], host: str, port: int) -> HTTPResponse:
    """
    Build the first-phase response: the document with the injected script.

    Args:
        template: Caller supplied HTML, or None.
        host: Host the follow-up request must target.
        port: The listener's port.
    """
    return ok(build_document(template, callback_script(host, port)))
