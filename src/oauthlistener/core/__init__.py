"""
=============================================================================
CORE LISTENER COMPONENTS
=============================================================================

The networking plumbing of a redirect listener:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Binds 127.0.0.1 on an OS-assigned (or preferred) port            │
    │  • Runs the blocking accept() loop on the listener thread           │
    │  • Hands each connection to the handler, one at a time              │
    │  • Closes the socket once a terminal result arrives                 │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ One connection at a time
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Bounded, timeout-tolerant read of a single request               │
    │  • sendall() of the response, failures reported not raised         │
    │  • Graceful close (FIN, drain, close)                               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
]
