from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventKind(str, Enum):
    """Well-known event kinds exchanged between clients and the core."""

    # client -> core
    TWEET_RECEIVED = "tweet_received"
    DM_RECEIVED = "dm_received"
    DISCORD_MESSAGE_RECEIVED = "discord_message_received"
    CONSOLE_MESSAGE = "console_message"
    INTERNAL_THOUGHT = "internal_thought"

    # core -> client
    TWEET_REQUEST = "tweet_request"
    DM_REQUEST = "dm_request"
    DISCORD_MESSAGE = "discord_message"


@dataclass(frozen=True, kw_only=True)
class Event:
    """Base class for all events.

    Generates a unique ``id`` and UTC ``timestamp`` when not provided to reduce
    boilerplate in tests and callers. ``metadata`` is stored as a read-only
    mapping; use :meth:`with_metadata` to derive an enriched copy.
    """

    kind: str
    content: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.kind, EventKind):
            object.__setattr__(self, "kind", self.kind.value)
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def with_metadata(self, **extra: Any) -> "Event":
        """Return a copy of the event with ``extra`` merged into metadata."""

        merged = {**self.metadata, **extra}
        return replace(self, metadata=merged)


@dataclass(frozen=True, kw_only=True)
class InboundEvent(Event):
    """Event flowing from a client (or the autonomous loop) into the core."""

    source: str


@dataclass(frozen=True, kw_only=True)
class OutboundEvent(Event):
    """Event produced by the core and addressed to a registered client."""

    target: str


@dataclass(frozen=True, kw_only=True)
class TweetReceived(InboundEvent):
    kind: str = EventKind.TWEET_RECEIVED.value
    tweet_id: str
    user_id: str = ""
    username: str = ""


@dataclass(frozen=True, kw_only=True)
class DMReceived(InboundEvent):
    kind: str = EventKind.DM_RECEIVED.value
    user_id: str
    username: str = ""


@dataclass(frozen=True, kw_only=True)
class DiscordMessageReceived(InboundEvent):
    kind: str = EventKind.DISCORD_MESSAGE_RECEIVED.value
    channel_id: str
    username: str = ""


@dataclass(frozen=True, kw_only=True)
class InternalThought(InboundEvent):
    """Self-initiated event produced by the autonomous loop."""

    kind: str = EventKind.INTERNAL_THOUGHT.value
    source: str = "consciousness"


@dataclass(frozen=True, kw_only=True)
class TweetRequest(OutboundEvent):
    kind: str = EventKind.TWEET_REQUEST.value
    reply_to: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class DMRequest(OutboundEvent):
    kind: str = EventKind.DM_REQUEST.value
    user_id: str


@dataclass(frozen=True, kw_only=True)
class DiscordMessageRequest(OutboundEvent):
    kind: str = EventKind.DISCORD_MESSAGE.value
    channel_id: str


def build_outbound_event(
    kind: str,
    target: str,
    content: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> OutboundEvent:
    """Construct the typed outbound variant for ``kind``.

    Variant-specific fields are pulled from ``metadata`` using the camelCase
    parameter names the action catalog advertises. Unknown kinds produce a
    plain :class:`OutboundEvent`.
    """

    meta = dict(metadata or {})
    if kind == EventKind.TWEET_REQUEST.value:
        reply_to = meta.get("replyTo")
        return TweetRequest(
            target=target,
            content=content,
            reply_to=str(reply_to) if reply_to else None,
            metadata=meta,
        )
    if kind == EventKind.DM_REQUEST.value and meta.get("userId"):
        return DMRequest(
            target=target, content=content, user_id=str(meta["userId"]), metadata=meta
        )
    if kind == EventKind.DISCORD_MESSAGE.value and meta.get("channelId"):
        return DiscordMessageRequest(
            target=target,
            content=content,
            channel_id=str(meta["channelId"]),
            metadata=meta,
        )
    return OutboundEvent(kind=kind, target=target, content=content, metadata=meta)


class EventSink(Protocol):
    """Anything that accepts inbound events, usually the dispatcher."""

    async def emit(self, event: InboundEvent) -> Any: ...


__all__ = [
    "EventKind",
    "EventSink",
    "Event",
    "InboundEvent",
    "OutboundEvent",
    "TweetReceived",
    "DMReceived",
    "DiscordMessageReceived",
    "InternalThought",
    "TweetRequest",
    "DMRequest",
    "DiscordMessageRequest",
    "build_outbound_event",
]
