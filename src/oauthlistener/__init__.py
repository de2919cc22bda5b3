"""
=============================================================================
OAUTHLISTENER - Loopback OAuth Redirect Capture
=============================================================================

Captures an OAuth redirect from the user's browser into a desktop process,
using a short-lived listener bound to 127.0.0.1 on an ephemeral port.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. port = start(None, on_redirect)                                │
    │   2. send the browser to the provider with                          │
    │        redirect_uri=http://127.0.0.1:<port>                         │
    │   3. the provider redirects the browser back to the listener        │
    │   4. the listener's page re-sends the FULL address (fragment        │
    │      included) to itself, and on_redirect(url) is called once       │
    │   5. the listener closes its port                                   │
    │                                                                      │
    │   cancel(port) stops a listener that is still waiting.              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    oauthlistener/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m oauthlistener)
    ├── server.py            # RedirectListener, start(), cancel()
    ├── config.py            # ListenerConfig dataclass
    ├── log.py               # Structured connection logging
    ├── core/
    │   ├── socket_server.py # Bind + blocking accept loop
    │   └── connection.py    # Bounded read, send, close
    ├── http/
    │   ├── request.py       # Minimal request parser
    │   └── response.py      # Response bytes + script injection
    └── handlers/
        └── redirect.py      # Two-phase capture state machine

=============================================================================
SECURITY NOTE
=============================================================================

Any local process can connect to a loopback port. Always check the OAuth
`state` parameter of the URL handed to your callback before trusting it.

=============================================================================
"""

__version__ = "1.0.0"

from .config import ListenerConfig
from .server import RedirectListener, cancel, start, start_listener

__all__ = [
    "ListenerConfig",
    "RedirectListener",
    "cancel",
    "start",
    "start_listener",
    "__version__",
]
