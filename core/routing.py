"""Derive the owning room's platform identity from an inbound event."""

from __future__ import annotations

from dataclasses import dataclass, field

from events.models import (
    DiscordMessageReceived,
    DMReceived,
    InboundEvent,
    TweetReceived,
)

TWITTER = "twitter"
DISCORD = "discord"

# kind prefix -> (platform, metadata keys that may hold the platform id)
_PREFIX_TABLE: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("tweet_", TWITTER, ("tweetId", "tweet_id")),
    ("dm_", TWITTER, ()),
    ("discord_", DISCORD, ("channelId", "channel_id")),
)


@dataclass(frozen=True)
class RoomContext:
    """Platform identity and room defaults derived from one event."""

    platform: str
    platform_id: str
    name: str
    participants: frozenset[str] = field(default_factory=frozenset)


def _participants(*names: str) -> frozenset[str]:
    return frozenset(n for n in names if n)


def _source_platform(source: str) -> str:
    return source.split("-")[0]


def resolve_room_context(event: InboundEvent) -> RoomContext:
    """Return the (platform, platform id) pair owning ``event``.

    Total over every inbound event: typed variants are matched first, any
    other kind falls back to the prefix table and finally to the source id.
    """

    match event:
        case TweetReceived(tweet_id=tweet_id, username=username, source=source):
            return RoomContext(
                platform=TWITTER,
                platform_id=tweet_id or source,
                name=f"Twitter Thread by {username}",
                participants=_participants(username, source),
            )
        case DMReceived(username=username, source=source):
            return RoomContext(
                platform=TWITTER,
                platform_id=source,
                name=f"Twitter DM with {username}",
                participants=_participants(username, source),
            )
        case DiscordMessageReceived(channel_id=channel_id, username=username, source=source):
            return RoomContext(
                platform=DISCORD,
                platform_id=channel_id or source,
                name=f"Discord Channel {channel_id}",
                participants=_participants(username, source),
            )
        case _:
            return _resolve_by_prefix(event)


def _resolve_by_prefix(event: InboundEvent) -> RoomContext:
    platform = _source_platform(event.source)
    platform_id = event.source
    for prefix, prefix_platform, id_keys in _PREFIX_TABLE:
        if event.kind.startswith(prefix):
            platform = prefix_platform
            for key in id_keys:
                if event.metadata.get(key):
                    platform_id = str(event.metadata[key])
                    break
            break
    return RoomContext(
        platform=platform,
        platform_id=platform_id,
        name=f"Room for {event.source}",
        participants=_participants(event.source),
    )


__all__ = ["RoomContext", "resolve_room_context", "TWITTER", "DISCORD"]
