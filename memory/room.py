"""A logical conversation and its append-only history."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .models import Memory


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Room:
    """One external conversation (thread, channel, DM) tracked by the core.

    ``id`` is generated once and stays stable; ``(platform_id, platform)`` is
    the external correlation key. Memories are only ever appended.
    """

    def __init__(
        self,
        platform_id: str,
        platform: str,
        *,
        name: str | None = None,
        description: str | None = None,
        participants: Iterable[str] | None = None,
        platform_specific: Mapping[str, Any] | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.platform_id = platform_id
        self.platform = platform
        self.created_at = _now()
        self.last_active_at = self.created_at
        self._participants: set[str] = set(participants or ())
        self._metadata: dict[str, Any] = {
            "name": name,
            "description": description,
            "platform_specific": dict(platform_specific or {}),
        }
        self._memories: list[Memory] = []

    # ------------------------------------------------------------------
    @property
    def participants(self) -> frozenset[str]:
        return frozenset(self._participants)

    @property
    def metadata(self) -> dict[str, Any]:
        """Return a copy of the descriptive metadata (name, description, ...)."""
        return {
            **self._metadata,
            "platform": self.platform,
            "participants": sorted(self._participants),
            "created_at": self.created_at,
            "last_active_at": self.last_active_at,
        }

    def update_metadata(self, **changes: Any) -> None:
        participants = changes.pop("participants", None)
        if participants:
            self._participants.update(participants)
        self._metadata.update(changes)
        self.last_active_at = _now()

    def touch(self, participants: Iterable[str] = ()) -> None:
        """Mark the room active and merge newly seen participants."""
        self._participants.update(p for p in participants if p)
        self.last_active_at = _now()

    # ------------------------------------------------------------------
    def add_memory(
        self, content: str, metadata: Mapping[str, Any] | None = None
    ) -> Memory:
        memory = Memory(room_id=self.id, content=content, metadata=metadata or {})
        self._memories.append(memory)
        self.last_active_at = memory.timestamp
        return memory

    def get_memories(self, limit: int | None = None) -> tuple[Memory, ...]:
        """Return the most recent ``limit`` memories in insertion order.

        ``None`` (or a non-positive limit) returns the whole history. The
        result is an immutable snapshot; callers cannot alter the room.
        """
        if limit is None or limit <= 0:
            return tuple(self._memories)
        return tuple(self._memories[-limit:])

    def __len__(self) -> int:
        return len(self._memories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platformId": self.platform_id,
            "platform": self.platform,
            "metadata": {
                "name": self._metadata.get("name"),
                "description": self._metadata.get("description"),
                "participants": sorted(self._participants),
                "platformSpecific": dict(self._metadata.get("platform_specific") or {}),
                "createdAt": self.created_at.isoformat(),
                "lastActive": self.last_active_at.isoformat(),
            },
            "memories": [m.to_dict() for m in self._memories],
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"Room(id={self.id!r}, platform={self.platform!r}, "
            f"platform_id={self.platform_id!r}, memories={len(self._memories)})"
        )
