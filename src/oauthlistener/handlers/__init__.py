"""
Connection handlers.

    redirect.py   Two-phase OAuth redirect capture state machine
"""

from .redirect import (
    CANCEL_SENTINEL,
    EXIT_PATH,
    Outcome,
    RedirectHandler,
    script_host,
)

__all__ = [
    "CANCEL_SENTINEL",
    "EXIT_PATH",
    "Outcome",
    "RedirectHandler",
    "script_host",
]
