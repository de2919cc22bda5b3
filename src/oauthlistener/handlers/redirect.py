"""
=============================================================================
REDIRECT CAPTURE HANDLER
=============================================================================

Per-connection protocol state machine for the loopback listener.

=============================================================================
TWO-PHASE CAPTURE
=============================================================================

The OAuth provider sends the browser to the listener. For implicit-style
flows the interesting part of that address is the FRAGMENT, which the
browser never transmits:

    Browser address bar:  http://127.0.0.1:53682/#access_token=abc
    What the server sees: GET / HTTP/1.1

So the capture takes two connections:

    Browser                                       Listener
       │                                              │
       │  GET / HTTP/1.1                              │   phase 1
       │  Host: 127.0.0.1:53682                       │
       │ ───────────────────────────────────────────► │
       │                                              │
       │  200 OK  <script>fetch(".../cb", ...)        │
       │ ◄─────────────────────────────────────────── │
       │                                              │
       │  GET /cb HTTP/1.1                            │   phase 2
       │  Full-Url: http://127.0.0.1:53682/#access... │
       │ ───────────────────────────────────────────► │
       │                                              │
       │  200 OK                                      │ → callback(url)
       │ ◄─────────────────────────────────────────── │

=============================================================================
STATE MACHINE
=============================================================================

    AWAITING READ
         │
         ├── first 4 bytes == 01 03 03 07 ──► SHUTDOWN_SENTINEL    → ""
         ├── not HTTP ──────────────────────► MALFORMED            → None
         ├── target == /exit ───────────────► SHUTDOWN_PATH        → ""
         ├── "Full-Url" header ─────────────► FULL_URL             → url
         ├── path == /cb, no header ────────► CALLBACK_MISSING_URL → None
         └── anything else ─────────────────► SCRIPT_ROUND_TRIP    → None

    None  = keep listening
    ""    = shut down, do not call back
    url   = call back with url, then shut down

=============================================================================
"""

import logging
import time
from enum import Enum
from typing import Optional

from ..core.connection import Connection, ConnectionState
from ..http.request import HTTPRequest, HTTPParseError, RequestParser
from ..http.response import CALLBACK_PATH, FULL_URL_HEADER, capture_page, ok
from .. import log


logger = logging.getLogger(__name__)


CANCEL_SENTINEL = bytes([1, 3, 3, 7])
"""
Cancellation magic. 0x01 is a control character, so no HTTP method token
(and therefore no real browser request) can start with it.
"""

EXIT_PATH = "/exit"

LOCALHOST = "localhost"
LOOPBACK_IP = "127.0.0.1"


class Outcome(Enum):
    """What one connection turned out to carry."""
    SHUTDOWN_SENTINEL = "shutdown_sentinel"
    MALFORMED = "malformed"
    SHUTDOWN_PATH = "shutdown_path"
    FULL_URL = "full_url"
    CALLBACK_MISSING_URL = "callback_missing_url"
    SCRIPT_ROUND_TRIP = "script_round_trip"


def script_host(request: HTTPRequest) -> str:
    """
    Pick the host name the follow-up request must target.

    The page and its fetch() must share an origin, so we answer with the
    same loopback name the browser used: "localhost" when the Host header
    names it (with or without a port), otherwise "127.0.0.1".
    """
    host = request.host.strip()
    if host.startswith("["):
        return LOOPBACK_IP  # IPv6 literal
    return LOCALHOST if host.split(":", 1)[0].lower() == LOCALHOST else LOOPBACK_IP


class RedirectHandler:
    """
    Handles one connection at a time for a single listener.

    Usage:
        handler = RedirectHandler(port=53682)
        with conn:
            result = handler.handle(conn)
    """

    def __init__(
        self,
        port: int,
        response: Optional[str] = None,
        log_format: str = "text",
    ):
        """
        Args:
            port: The listener's port, used in the injected script.
            response: Optional HTML template shown to the user.
            log_format: "text" or "json" connection log lines.
        """
        self.port = port
        self.response = response
        self.log_format = log_format
        self._parser = RequestParser()

    def handle(self, conn: Connection) -> Optional[str]:
        """
        Process one connection.

        Returns:
            None to keep listening, "" to shut down without a callback,
            or the captured URL.
        """
        start = time.time()
        data = conn.read_chunk()

        conn.state = ConnectionState.PROCESSING
        outcome, result, request = self._dispatch(conn, data)

        log.emit(
            log.ConnectionLog(
                connection_id=conn.id,
                client_ip=conn.client_ip,
                outcome=outcome.value,
                method=request.method if request else "",
                path=request.path if request else "",
                bytes_read=len(data),
                duration_ms=(time.time() - start) * 1000,
                timestamp=log.now(),
            ),
            self.log_format,
        )
        return result

    def _dispatch(
        self, conn: Connection, data: bytes
    ) -> tuple[Outcome, Optional[str], Optional[HTTPRequest]]:
        if data[:4] == CANCEL_SENTINEL:
            logger.info("Cancellation requested")
            return Outcome.SHUTDOWN_SENTINEL, "", None

        try:
            request = self._parser.parse(data)
        except HTTPParseError as e:
            logger.warning(f"[{conn.id}] Dropping unparseable request: {e}")
            return Outcome.MALFORMED, None, None

        # Raw target: "/exit?x=1" or "/%65xit" are ordinary page loads
        if request.target == EXIT_PATH:
            logger.info(f"Shutdown requested via {EXIT_PATH}")
            return Outcome.SHUTDOWN_PATH, "", request

        full_url = request.find_header(FULL_URL_HEADER)
        if full_url:
            # Answer so the fetch() completes; the body is irrelevant.
            conn.send_response(ok().to_bytes())
            return Outcome.FULL_URL, full_url, request

        if request.path == CALLBACK_PATH:
            logger.error(
                f"[{conn.id}] Request to {CALLBACK_PATH} is missing the "
                f"{FULL_URL_HEADER} header, ignoring it"
            )
            conn.send_response(ok().to_bytes())
            return Outcome.CALLBACK_MISSING_URL, None, request

        page = capture_page(self.response, script_host(request), self.port)
        conn.send_response(page.to_bytes())
        return Outcome.SCRIPT_ROUND_TRIP, None, request
