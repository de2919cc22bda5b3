"""
=============================================================================
REDIRECT LISTENER
=============================================================================

Public entry points: start a single-shot loopback listener, and cancel one.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌──────────────────────────────────────────────────────────────────────┐
    │                                                                       │
    │   caller thread                         listener thread               │
    │   ─────────────                         ───────────────               │
    │                                                                       │
    │   start(response, callback)                                          │
    │     ├─► SocketServer.bind()  ─── port ───┐                           │
    │     ├─► Thread(target=_run).start()      │                           │
    │     └─► return port  ◄───────────────────┘                           │
    │                                              _run()                   │
    │   build redirect URI,                          │                      │
    │   open the browser ...                         ▼                      │
    │                                        SocketServer.serve(            │
    │                                            RedirectHandler.handle)    │
    │                                                │                      │
    │                                                ├─ None  → accept next │
    │                                                ├─ ""    → stop        │
    │                                                └─ url   → stop,       │
    │                                                           callback(url)│
    │                                                                       │
    │   cancel(port) ─── 01 03 03 07 ──────────► handled like any other     │
    │                                            connection → ""            │
    │                                                                       │
    └──────────────────────────────────────────────────────────────────────┘

Each listener owns its socket, its thread and its result. There is no
module-level state, so any number of listeners may run side by side, each
on its own port.

=============================================================================
USAGE
=============================================================================

    from oauthlistener import start, cancel

    def on_redirect(url):
        # The port is reachable by every local process: verify `state`!
        ...

    port = start(None, on_redirect)
    webbrowser.open(authorize_url(redirect_uri=f"http://127.0.0.1:{port}"))

    # Later, if the user gives up:
    cancel(port)

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional

from .config import ListenerConfig
from .core import SocketServer
from .handlers import CANCEL_SENTINEL, RedirectHandler


logger = logging.getLogger(__name__)


RedirectCallback = Callable[[str], None]


class RedirectListener:
    """
    One single-shot loopback listener.

    The port is fixed once start() returns. The background thread is the
    only thing that ever touches the socket; it calls the callback at most
    once and then exits.
    """

    def __init__(
        self,
        handler: RedirectCallback,
        response: Optional[str] = None,
        config: Optional[ListenerConfig] = None,
    ):
        """
        Args:
            handler: Called with the captured URL, on the listener thread.
            response: Optional HTML template shown in the browser.
            config: Listener configuration (defaults to ListenerConfig()).
        """
        self.config = config or ListenerConfig()
        self.config.validate()

        self._callback = handler
        self._response = response
        self._socket_server = SocketServer(self.config)
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> Optional[int]:
        """The bound port, or None before start()."""
        return self._socket_server.port

    @property
    def thread(self) -> Optional[threading.Thread]:
        """The background thread running the accept loop."""
        return self._thread

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is still alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def redirect_uri(self) -> str:
        """Base redirect URI for this listener, e.g. http://127.0.0.1:53682"""
        return f"http://{self.config.host}:{self.port}"

    def start(self) -> int:
        """
        Bind the socket and start the accept loop in the background.

        Returns:
            The bound port, before any connection has been accepted.

        Raises:
            OSError: If the socket cannot be bound.
            RuntimeError: If this listener was already started.
        """
        if self._thread is not None:
            raise RuntimeError("Listener already started")

        port = self._socket_server.bind()

        self._thread = threading.Thread(
            target=self._run,
            args=(RedirectHandler(port, self._response, self.config.log_format),),
            name=f"oauthlistener-{port}",
            daemon=True,
        )
        self._thread.start()
        return port

    def _run(self, redirect_handler: RedirectHandler):
        """Accept loop body; runs on the listener thread."""
        result = self._socket_server.serve(redirect_handler.handle)

        if not result:
            logger.info(f"Listener on port {self.port} stopped without a redirect")
            return

        logger.info(f"Captured redirect on port {self.port}")
        try:
            self._callback(result)
        except Exception as e:
            logger.exception(f"Redirect callback failed: {e}")

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the accept loop to finish.

        Returns:
            True if the listener has stopped, False on timeout.
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def cancel(self, timeout: Optional[float] = 5.0):
        """Send the cancellation sentinel to this listener."""
        if self.port is None:
            raise RuntimeError("Listener was never started")
        cancel(self.port, host=self.config.host, timeout=timeout)


def start_listener(
    response: Optional[str],
    handler: RedirectCallback,
    config: Optional[ListenerConfig] = None,
) -> RedirectListener:
    """
    Start a listener and return it.

    Same as start(), but gives access to the thread and to join().
    """
    listener = RedirectListener(handler, response=response, config=config)
    listener.start()
    return listener


def start(
    response: Optional[str],
    handler: RedirectCallback,
    config: Optional[ListenerConfig] = None,
) -> int:
    """
    Start a loopback listener for one OAuth redirect.

    Args:
        response: HTML the user sees after being redirected. None for a
            built-in "Please return to the app." page. The capture script
            is merged into it.
        handler: Called once, on the listener thread, with the full
            redirect URL (fragment included). Never called if the listener
            is cancelled first.
        config: Optional listener configuration.

    Returns:
        The port the listener is bound to.

    Raises:
        OSError: If the socket cannot be bound.
    """
    return start_listener(response, handler, config).port


def cancel(port: int, host: str = "127.0.0.1", timeout: Optional[float] = 5.0):
    """
    Ask the listener on `port` to shut down without calling back.

    Connects, writes the 4-byte sentinel, and closes.

    Raises:
        OSError: If the listener cannot be reached.
    """
    with socket.create_connection((host, port), timeout=timeout) as sock:
        sock.sendall(CANCEL_SENTINEL)
    logger.debug(f"Sent cancellation to {host}:{port}")
