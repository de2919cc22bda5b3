"""
=============================================================================
CONNECTION LOGGING
=============================================================================

One structured log line per handled connection, on a dedicated logger so
applications can route it separately:

    logging.getLogger("oauthlistener.access").setLevel(logging.WARNING)

Two formats are supported:

    text:  127.0.0.1 [19/Oct/2026:10:00:00 +0000] "GET /cb" full_url 1.42ms
    json:  {"connection_id": "3f2a9c1d", "outcome": "full_url", ...}

The captured URL itself is NEVER logged: it usually carries an access
token or an authorization code.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass


logger = logging.getLogger("oauthlistener.access")


@dataclass
class ConnectionLog:
    """Structured log entry for one handled connection."""

    connection_id: str
    client_ip: str
    outcome: str
    method: str
    path: str
    bytes_read: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "connection_id": self.connection_id,
            "client_ip": self.client_ip,
            "outcome": self.outcome,
            "method": self.method,
            "path": self.path,
            "bytes_read": self.bytes_read,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Format as a single access-log style line."""
        request = f"{self.method} {self.path}" if self.method else "-"
        return (
            f'{self.client_ip} [{self.timestamp}] "{request}" '
            f"{self.outcome} {self.bytes_read}B {self.duration_ms:.2f}ms"
        )


def emit(entry: ConnectionLog, log_format: str = "text"):
    """Write a connection log entry in the requested format."""
    if log_format == "json":
        logger.info(json.dumps(entry.to_dict()))
    else:
        logger.info(entry.to_text())


def now() -> str:
    """Timestamp in the access-log format."""
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")


def setup_logging(level: str = "INFO"):
    """
    Configure logging for command line use.

    The library never installs handlers itself; only the CLI calls this.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("oauthlistener").setLevel(numeric)
