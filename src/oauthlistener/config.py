"""
=============================================================================
LISTENER CONFIGURATION
=============================================================================

Centralized configuration for the loopback redirect listener.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m oauthlistener --port 8765                       │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── OAUTH_LISTENER_PORTS=8765,8766 python -m oauthlistener    │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The listener only ever binds a LOOPBACK address. Redirect URIs pointing at
127.0.0.1 are reachable from the user's browser but never from another
host, which is the whole point of the loopback redirect flow.

=============================================================================
"""

import ipaddress
import os
from dataclasses import dataclass
from typing import Optional


LOG_FORMATS = ("text", "json")


@dataclass
class ListenerConfig:
    """
    Configuration for a redirect listener.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, ports, backlog, buffer_size, timeout

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    IPv4 loopback address to bind to (127.0.0.0/8).
    Anything else, IPv6 ::1 included, is rejected by validate().
    """

    ports: Optional[list[int]] = None
    """
    Preferred fixed ports, tried in order.
    None = let the OS assign an ephemeral port (bind to port 0).
    Useful for providers that only accept pre-registered redirect URIs.
    """

    backlog: int = 16
    """
    Maximum number of queued connections.
    A browser opens a handful at most during one authorization flow.
    """

    buffer_size: int = 4096
    """
    Maximum number of bytes read from one connection.
    Everything past this is ignored; the request line and the headers we
    care about (Host, Full-Url) always fit.
    """

    timeout: Optional[float] = 5.0
    """
    Overall time allowed for reading one request, in seconds.
    Browsers open speculative pre-connections that never send a byte;
    without a timeout one of those would stall the accept loop.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Connection log format: 'json' or 'text'."""

    @classmethod
    def from_env(cls) -> "ListenerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        OAUTH_LISTENER_HOST         Loopback host (default: 127.0.0.1)
        OAUTH_LISTENER_PORTS        Comma separated fixed ports (default: OS)
        OAUTH_LISTENER_BUFFER_SIZE  Read buffer in bytes (default: 4096)
        OAUTH_LISTENER_TIMEOUT      Read timeout in seconds (default: 5)
        OAUTH_LISTENER_LOG_LEVEL    Logging level (default: INFO)
        OAUTH_LISTENER_LOG_FORMAT   text or json (default: text)

        =====================================================================
        """
        ports = os.getenv("OAUTH_LISTENER_PORTS", "")
        return cls(
            host=os.getenv("OAUTH_LISTENER_HOST", "127.0.0.1"),
            ports=[int(p) for p in ports.split(",") if p.strip()] or None,
            buffer_size=int(os.getenv("OAUTH_LISTENER_BUFFER_SIZE", "4096")),
            timeout=float(os.getenv("OAUTH_LISTENER_TIMEOUT", "5")),
            log_level=os.getenv("OAUTH_LISTENER_LOG_LEVEL", "INFO"),
            log_format=os.getenv("OAUTH_LISTENER_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value found.
        """
        try:
            address = ipaddress.ip_address(self.host)
        except ValueError:
            raise ValueError(f"Invalid host: {self.host}. Must be an IP address.")

        if address.version != 4 or not address.is_loopback:
            raise ValueError(f"Invalid host: {self.host}. Must be an IPv4 loopback address.")

        for port in self.ports or []:
            if not 0 < port < 65536:
                raise ValueError(f"Invalid port: {port}. Must be 1-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 512:
            raise ValueError("buffer_size must be >= 512")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
