"""
=============================================================================
LOOPBACK SOCKET SERVER
=============================================================================

Owns the listening socket of one redirect listener: binds it, runs the
accept loop, and releases it when the loop ends.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    1. socket()    Create the TCP socket
    2. bind()      127.0.0.1:0  → the OS picks a free ephemeral port
                   (or each preferred port in turn, see ListenerConfig.ports)
    3. listen()    Start queueing connections
    4. accept()    BLOCKS until a client connects, one connection at a time
    5. close()     Release the port when a terminal result arrives

Binding happens in bind(), on the caller's thread, so the port is known
(and bind errors are raised) before any background work starts. serve()
is what the listener's background thread runs.

=============================================================================
NO POLLING
=============================================================================

accept() is fully blocking: no timeout, no sleep-and-check loop. The only
way to stop the loop is a connection whose handling yields a terminal
result. Cancellation is therefore just another connection (see cancel()
in oauthlistener.server), and it wakes the loop immediately.

    while True:
        conn = accept()
        result = handler(conn)
        if result is not None:
            return result        ← "" (shutdown) or the captured URL

=============================================================================
"""

import os
import socket
import logging
import time
from typing import Optional, Callable

from ..config import ListenerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


ACCEPT_ERROR_BACKOFF = 0.05
"""Pause after a failed accept() so a persistent error (EMFILE) cannot spin."""


class SocketServer:
    """
    Low-level loopback TCP server for a single listener.

    Usage:
        server = SocketServer(config)
        port = server.bind()                 # caller's thread
        result = server.serve(handle)        # background thread, blocks
    """

    def __init__(self, config: ListenerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._port: Optional[int] = None

    @property
    def port(self) -> Optional[int]:
        """The bound port, or None before bind()."""
        return self._port

    def _create_socket(self, reuse_address: bool) -> socket.socket:
        """
        Create and configure a listening socket.

        SO_REUSEADDR is only set for fixed ports, so a port left in
        TIME_WAIT by a previous run can be bound again. It is never set on
        Windows, where it would let another process steal the port.
        SO_REUSEPORT is never set: one port, one listener.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        if reuse_address and os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    def bind(self) -> int:
        """
        Bind and listen.

        Tries every port in config.ports in order, or port 0 (OS-assigned)
        when none are configured.

        Returns:
            The port actually bound.

        Raises:
            OSError: If no candidate port could be bound.
        """
        if self._socket is not None:
            raise RuntimeError("Socket server is already bound")

        fixed = bool(self.config.ports)
        candidates = self.config.ports if fixed else [0]
        last_error: Optional[OSError] = None

        for candidate in candidates:
            sock = self._create_socket(reuse_address=fixed)
            try:
                sock.bind((self.config.host, candidate))
                sock.listen(self.config.backlog)
            except OSError as e:
                logger.debug(f"Could not bind {self.config.host}:{candidate}: {e}")
                sock.close()
                last_error = e
                continue

            self._socket = sock
            self._port = sock.getsockname()[1]
            logger.info(f"Listening on {self.config.host}:{self._port}")
            return self._port

        logger.error(f"Failed to bind any of {candidates} on {self.config.host}: {last_error}")
        raise last_error

    def serve(self, connection_handler: Callable[[Connection], Optional[str]]) -> Optional[str]:
        """
        Run the accept loop until a connection yields a terminal result.

        Args:
            connection_handler: Called with each accepted connection.
                Returns None to keep accepting, anything else to stop.

        Returns:
            The terminal result, or None if the socket went away.
        """
        if self._socket is None:
            raise RuntimeError("bind() must be called before serve()")

        try:
            return self._accept_loop(connection_handler)
        finally:
            self.close()

    def _accept_loop(self, connection_handler: Callable[[Connection], Optional[str]]) -> Optional[str]:
        while True:
            try:
                client_socket, client_address = self._socket.accept()
            except OSError as e:
                if self._socket is None or self._socket.fileno() == -1:
                    logger.debug("Listening socket closed, leaving accept loop")
                    return None
                # Socket still open: keep accepting
                logger.error(f"Accept error: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")

            with conn:
                try:
                    result = connection_handler(conn)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    result = None

            if result is not None:
                return result

    def close(self):
        """Close the listening socket and release the port."""
        if self._socket is None:
            return

        try:
            self._socket.close()
        except OSError:
            pass  # Already closed
        self._socket = None

        logger.info(f"Stopped listening on {self.config.host}:{self._port}")
