"""Core package public API.

Provides lazy accessors to avoid importing the pipeline and memory layers at
import time.
"""

from .exceptions import ConfigurationError, CoreError, RoomNotFoundError

__all__ = [
    "Dispatcher",
    "RoomContext",
    "resolve_room_context",
    "CoreError",
    "ConfigurationError",
    "RoomNotFoundError",
]


def __getattr__(name: str):  # pragma: no cover - simple import shim
    if name == "Dispatcher":
        from .dispatcher import Dispatcher  # Local import to avoid cycles

        return Dispatcher
    if name in ("RoomContext", "resolve_room_context"):
        from . import routing

        return getattr(routing, name)
    raise AttributeError(f"module 'core' has no attribute {name!r}")
