"""Session registry: rooms indexed by platform identity."""

from __future__ import annotations

import logging
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.exceptions import ConfigurationError, RoomNotFoundError
from metrics import ERRORS

from .models import Memory
from .room import Room
from .similarity import SimilarityIndex, room_scope


class RoomManager:
    """Creates and looks up rooms and forwards memory writes.

    ``create_room`` does not check for duplicates: callers look up first.
    The in-memory append is authoritative; the similarity index only holds a
    derived copy and failures to mirror into it are logged, not raised.
    """

    def __init__(
        self,
        similarity_index: SimilarityIndex | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.similarity_index = similarity_index
        self._room_index = room_scope(similarity_index)
        self.logger = logger or logging.getLogger(__name__)
        self._rooms: Dict[str, Room] = {}
        self._platform_rooms: Dict[str, List[str]] = {}

    # ------------------------------------------------------------------
    def create_room(
        self,
        platform_id: str,
        platform: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Room:
        """Allocate a room for ``(platform_id, platform)`` and index it."""

        overrides = dict(metadata or {})
        room = Room(
            platform_id,
            platform,
            name=overrides.pop("name", None),
            description=overrides.pop("description", None),
            participants=overrides.pop("participants", None),
            platform_specific=overrides.pop("platform_specific", None),
        )
        if overrides:
            room.update_metadata(**overrides)
        self._rooms[room.id] = room
        self._platform_rooms.setdefault(platform, []).append(room.id)
        self.logger.debug(
            "room_created",
            extra={"room_id": room.id, "platform": platform, "platform_id": platform_id},
        )
        return room

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_room_by_platform_id(self, platform_id: str, platform: str) -> Room | None:
        """Return the first room in ``platform`` whose platform id matches."""

        for room_id in self._platform_rooms.get(platform, ()):
            room = self._rooms.get(room_id)
            if room is not None and room.platform_id == platform_id:
                return room
        return None

    def get_rooms(self) -> Mapping[str, Room]:
        """Read-only view of all rooms keyed by room id."""
        return MappingProxyType(self._rooms)

    def rooms_for_platform(self, platform: str) -> List[Room]:
        return [self._rooms[r] for r in self._platform_rooms.get(platform, ()) if r in self._rooms]

    # ------------------------------------------------------------------
    async def add_memory(
        self,
        room_id: str,
        content: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Memory:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        memory = room.add_memory(content, metadata)
        if self.similarity_index is not None:
            await self._mirror(room, memory)
        return memory

    async def _mirror(self, room: Room, memory: Memory) -> None:
        enriched: Dict[str, Any] = {
            "memoryId": memory.id,
            "roomId": room.id,
            "platform": room.platform,
            "timestamp": memory.timestamp.isoformat(),
            **memory.metadata,
        }
        try:
            if self._room_index is not None:
                await self._room_index.store_in_room(memory.content, room.id, enriched)
            elif self.similarity_index is not None:
                await self.similarity_index.store(memory.content, enriched)
        except Exception as exc:
            ERRORS.labels("room_manager", type(exc).__name__).inc()
            self.logger.warning(
                "memory_mirror_failed",
                extra={"room_id": room.id, "id": memory.id, "error": str(exc)},
            )

    async def find_similar_memories(
        self,
        content: str,
        room_id: str | None = None,
        limit: int = 5,
    ) -> List[Memory]:
        """Search the similarity index, optionally restricted to one room.

        Raises :class:`ConfigurationError` when no index is configured.
        """

        if self.similarity_index is None:
            raise ConfigurationError("Similarity index not configured")

        if room_id is not None and self._room_index is not None:
            results = await self._room_index.find_similar_in_room(content, room_id, limit)
        else:
            metadata = {"roomId": room_id} if room_id else None
            results = await self.similarity_index.find_similar(content, limit, metadata)

        memories: List[Memory] = []
        for result in results:
            meta = dict(result.metadata or {})
            kwargs: Dict[str, Any] = {}
            if meta.get("memoryId"):
                kwargs["id"] = str(meta["memoryId"])
            ts = _parse_timestamp(meta.get("timestamp"))
            if ts is not None:
                kwargs["timestamp"] = ts
            memories.append(
                Memory(
                    room_id=str(meta.get("roomId", room_id or "")),
                    content=result.content,
                    metadata=meta,
                    **kwargs,
                )
            )
        return memories

    def recent_memories(
        self, *, per_room: int = 5, limit: int = 10, rooms: Iterable[Room] | None = None
    ) -> List[Memory]:
        """Sample the newest memories across rooms, most recent first."""

        pool: List[Memory] = []
        for room in rooms if rooms is not None else list(self._rooms.values()):
            pool.extend(room.get_memories(per_room))
        pool.sort(key=lambda m: m.timestamp, reverse=True)
        return pool[:limit]


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


__all__ = ["RoomManager"]
