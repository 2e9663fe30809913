"""Debug messages routed to a replaceable handler (stderr by default)."""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

DebugHandler = Callable[[str], None]


def _default_handler(message: str) -> None:
    sys.stderr.write(f"DEBUG: {message}\n")


class _Router:
    """Holds the handler that currently receives debug messages."""

    def __init__(self) -> None:
        self.handler: DebugHandler = _default_handler

    def route(self, handler: DebugHandler) -> None:
        if not callable(handler):
            raise TypeError("debug handler must be callable")
        self.handler = handler

    def emit(self, message: str) -> None:
        self.handler(message)


_router = _Router()


def debug_str(message: str) -> None:
    """Send ``message`` to the current debug handler."""
    _router.emit(message)


def debug(fmt: str, *args: Any, **kwargs: Any) -> None:
    """Format and emit a debug message; disabled when Python runs with -O."""
    if __debug__:
        debug_str(fmt.format(*args, **kwargs))


def set_debug_handler(handler: DebugHandler) -> None:
    """Route debug messages to ``handler``."""
    _router.route(handler)


def reset_debug_handler() -> None:
    """Restore the default stderr handler."""
    _router.route(_default_handler)