"""Rooms, their memories and the similarity mirror."""

from .models import Memory, SearchResult
from .room import Room
from .room_manager import RoomManager
from .similarity import (
    InMemorySimilarityIndex,
    RoomScopedSimilarityIndex,
    SimilarityIndex,
    room_scope,
)

__all__ = [
    "Memory",
    "SearchResult",
    "Room",
    "RoomManager",
    "SimilarityIndex",
    "RoomScopedSimilarityIndex",
    "InMemorySimilarityIndex",
    "room_scope",
]
