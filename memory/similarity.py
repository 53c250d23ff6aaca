"""Similarity index contracts and an in-process reference index.

The index is a derived, replaceable mirror of room memories. Collaborators
declare whether they support room-scoped storage through the ``room_scoped``
attribute; callers resolve that capability once via :func:`room_scope`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from llm.base_client import EmbeddingsClient
from utils.vector_math import cosine_similarity, hashed_embedding

from .models import SearchResult

logger = logging.getLogger(__name__)


@runtime_checkable
class SimilarityIndex(Protocol):
    """Global similarity search over stored content."""

    room_scoped: bool

    async def store(
        self, content: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Index ``content`` with ``metadata``."""

    async def find_similar(
        self,
        content: str,
        limit: int = 5,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchResult]:
        """Return hits ranked by similarity, filtered by ``metadata`` equality."""


@runtime_checkable
class RoomScopedSimilarityIndex(SimilarityIndex, Protocol):
    """Similarity index that can partition content per room."""

    async def store_in_room(
        self,
        content: str,
        room_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Index ``content`` inside ``room_id``."""

    async def find_similar_in_room(
        self,
        content: str,
        room_id: str,
        limit: int = 5,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchResult]:
        """Return hits from ``room_id`` only."""


def room_scope(index: SimilarityIndex | None) -> RoomScopedSimilarityIndex | None:
    """Return ``index`` when it declares room-scoped support, else ``None``."""

    if index is not None and getattr(index, "room_scoped", False):
        return index  # type: ignore[return-value]
    return None


@dataclass
class _IndexedItem:
    id: str
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


class InMemorySimilarityIndex:
    """Cosine-similarity index kept in process memory.

    Embeddings come from ``embeddings_client`` when provided and fall back to
    a deterministic hashing embedding otherwise (or when the client fails).
    Hits scoring at or below ``min_similarity`` are discarded.
    """

    room_scoped = True

    def __init__(
        self,
        embeddings_client: EmbeddingsClient | None = None,
        *,
        min_similarity: float = 0.0,
        dim: int = 64,
    ) -> None:
        self.embeddings_client = embeddings_client
        self.min_similarity = min_similarity
        self.dim = dim
        self._items: List[_IndexedItem] = []

    async def _embed(self, text: str) -> List[float]:
        if self.embeddings_client:
            try:
                return [float(x) for x in await self.embeddings_client.embed(text)]
            except Exception as exc:
                logger.warning("embedding_failed", extra={"error": str(exc)})
        return hashed_embedding(text, self.dim)

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    async def store(
        self, content: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        meta = dict(metadata or {})
        item_id = str(meta.get("memoryId") or uuid.uuid4())
        self._items.append(
            _IndexedItem(
                id=item_id, content=content, embedding=await self._embed(content), metadata=meta
            )
        )

    async def store_in_room(
        self,
        content: str,
        room_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        await self.store(content, {**(metadata or {}), "roomId": room_id})

    async def find_similar(
        self,
        content: str,
        limit: int = 5,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchResult]:
        if limit <= 0 or not self._items:
            return []
        query = await self._embed(content)
        wanted = dict(metadata or {})
        scored: List[SearchResult] = []
        for item in self._items:
            if any(item.metadata.get(k) != v for k, v in wanted.items()):
                continue
            score = cosine_similarity(query, item.embedding)
            if score <= self.min_similarity:
                continue
            scored.append(
                SearchResult(
                    id=item.id,
                    content=item.content,
                    similarity=score,
                    metadata=dict(item.metadata),
                )
            )
        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:limit]

    async def find_similar_in_room(
        self,
        content: str,
        room_id: str,
        limit: int = 5,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchResult]:
        return await self.find_similar(
            content, limit, {**(metadata or {}), "roomId": room_id}
        )


__all__ = [
    "SimilarityIndex",
    "RoomScopedSimilarityIndex",
    "InMemorySimilarityIndex",
    "room_scope",
]
