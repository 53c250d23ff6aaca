"""Exceptions raised by the orchestration core."""

from __future__ import annotations


class CoreError(Exception):
    """Base class for errors surfaced to callers of the core."""


class ConfigurationError(CoreError):
    """An operation needs a collaborator or capability that is not configured."""


class RoomNotFoundError(CoreError, KeyError):
    """Raised when a room id does not refer to a known room."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id

    def __str__(self) -> str:
        return f"Room {self.room_id} not found"


__all__ = ["CoreError", "ConfigurationError", "RoomNotFoundError"]
