"""
pytest configuration and fixtures.
"""

import socket
import time
from typing import Callable, Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from oauthlistener import ListenerConfig, RedirectListener


@pytest.fixture
def first_phase_request() -> bytes:
    """What a browser sends when the provider redirects it to the listener."""
    return (
        b"GET /?state=xyz HTTP/1.1\r\n"
        b"Host: 127.0.0.1:53682\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def callback_request() -> bytes:
    """The follow-up request issued by the injected script."""
    return (
        b"GET /cb HTTP/1.1\r\n"
        b"Host: 127.0.0.1:53682\r\n"
        b"Full-Url: http://127.0.0.1:9999/callback#token=abc\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> ListenerConfig:
    """Default test listener configuration."""
    return ListenerConfig(timeout=1.0)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """
    Send raw bytes to a listener and return everything it answers.

    The write side is shut down right after sending so the listener never
    waits for more input.
    """
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(data)
        sock.shutdown(socket.SHUT_WR)

        response = b""
        while True:
            try:
                chunk = sock.recv(4096)
            except ConnectionResetError:
                break
            if not chunk:
                break
            response += chunk
        return response


def wait_until_refused(port: int, timeout: float = 5.0) -> bool:
    """Wait for the listener's port to stop accepting connections."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.5):
                pass
        except OSError:
            return True
        time.sleep(0.05)
    return False


class ListenerHarness:
    """Test helper that records what a listener hands to its callback."""

    def __init__(self):
        self.captured: list[str] = []
        self.listeners: list[RedirectListener] = []

    def on_redirect(self, url: str):
        self.captured.append(url)

    def start(self, response=None, config=None) -> RedirectListener:
        listener = RedirectListener(
            self.on_redirect,
            response=response,
            config=config or ListenerConfig(timeout=1.0),
        )
        listener.start()
        self.listeners.append(listener)
        return listener

    def stop_all(self):
        for listener in self.listeners:
            if listener.is_running:
                try:
                    listener.cancel()
                except OSError:
                    pass
                listener.join(timeout=5.0)


@pytest.fixture
def harness() -> Generator[ListenerHarness, None, None]:
    """Start listeners that are always cleaned up after the test."""
    h = ListenerHarness()
    yield h
    h.stop_all()


@pytest.fixture
def send() -> Callable[[int, bytes], bytes]:
    return send_raw


@pytest.fixture
def refused() -> Callable[[int], bool]:
    return wait_until_refused
