"""Records stored in a room's history."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

__all__ = ["Memory", "SearchResult"]


@dataclass(frozen=True)
class Memory:
    """One immutable content record appended to a room.

    ``room_id`` is a back-reference only; the room owns the record. Metadata
    is exposed read-only.
    """

    room_id: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class SearchResult:
    """Single hit returned by a similarity index."""

    id: str
    content: str
    similarity: float
    metadata: Mapping[str, Any] = field(default_factory=dict)
