"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket with the three operations the redirect
handler needs: read one bounded chunk, send a response, close.

=============================================================================
ONE READ, BOUNDED
=============================================================================

The listener never needs more than the request line and a couple of
headers, so a connection is read until ONE of these happens:

    - the header terminator \r\n\r\n has arrived
    - buffer_size bytes have arrived
    - the client closed its side (recv() returned b"")
    - timeout seconds have passed since reading started

Whatever has arrived by then is the request. Short reads, empty reads and
timeouts are all normal here: the cancellation sentinel is only 4 bytes
followed by a close, and browsers open pre-connections that send nothing.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


DRAIN_TIMEOUT = 0.5
"""Total time close() spends discarding unread input."""

DRAIN_LIMIT = 64 * 1024
"""Most bytes close() discards before giving up on the peer."""


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Unique connection identifier (for logging).
        state: Current connection state.
        created_at: Timestamp when connection was accepted.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 4096
    timeout: Optional[float] = 5.0

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return str(self.address[0]) if self.address else ""

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    def read_chunk(self) -> bytes:
        """
        Read up to buffer_size bytes from the client.

        Returns:
            The bytes received, possibly empty. Never raises for timeouts
            or for a client that disconnects early.
        """
        self.state = ConnectionState.READING
        data = b""
        deadline = time.monotonic() + self.timeout if self.timeout else None

        while len(data) < self.buffer_size:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.debug(f"[{self.id}] Read deadline reached after {len(data)} bytes")
                    break
                self.socket.settimeout(remaining)

            try:
                chunk = self.socket.recv(self.buffer_size - len(data))
            except socket.timeout:
                logger.debug(f"[{self.id}] Read timeout after {len(data)} bytes")
                break
            except OSError as e:
                logger.debug(f"[{self.id}] Read failed: {e}")
                break

            if not chunk:
                break  # Client closed its side

            data += chunk
            if b"\r\n\r\n" in data:
                break

        return data

    def send_response(self, data: bytes) -> bool:
        """
        Send response data to the client.

        sendall() blocks until every byte is handed to the kernel, so once
        this returns True the response is flushed.

        Returns:
            True if send succeeded, False if the client is gone.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def close(self):
        """
        Close the connection gracefully.

        shutdown(SHUT_WR) sends FIN so the browser sees the end of the
        response, then remaining input is drained for at most DRAIN_TIMEOUT
        seconds and DRAIN_LIMIT bytes before close().
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        drained = 0
        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(1024)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
