"""Enrichment → intent extraction → action generation for one inbound event.

``EventProcessor.process`` never raises: every stage catches its own
failures, logs them and degrades to an empty or minimal result so the
dispatcher always receives a :class:`ProcessingResult`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from actions.registry import ActionDescriptor, ActionRegistry
from core.utils.json_io import parse_llm_json
from events.models import InboundEvent, OutboundEvent, build_outbound_event
from llm.base_client import CompletionOptions, TextCompletionClient
from llm.prompts import STRICT_JSON_SUFFIX, action_selection_prompt, enrichment_prompt
from llm.utils import unwrap_response
from memory.room import Room
from memory.similarity import SimilarityIndex, room_scope
from metrics import ERRORS

from .intent import Intent, IntentExtractor

SUMMARY_MAX_CHARS = 100

# Upper bounds (exclusive, in hours) for each recency bucket.
RECENCY_BUCKETS: tuple[tuple[float, str], ...] = (
    (24.0, "very_recent"),
    (72.0, "recent"),
    (168.0, "this_week"),
    (720.0, "this_month"),
)
OLDEST_BUCKET = "older"


def recency_bucket(elapsed: timedelta) -> str:
    """Map elapsed time to its recency label.

    Boundaries are exclusive upper bounds: exactly 24h is ``recent``.
    Negative values (clock skew) count as ``very_recent``.
    """

    hours = elapsed.total_seconds() / 3600.0
    for upper, label in RECENCY_BUCKETS:
        if hours < upper:
            return label
    return OLDEST_BUCKET


def time_context(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Return the recency bucket of ``timestamp`` relative to ``now``."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return recency_bucket(current - timestamp)


@dataclass(frozen=True)
class EnrichedContext:
    """Structured enrichment attached to an event's metadata."""

    time_context: str
    summary: str
    topics: List[str] = field(default_factory=list)
    related_memories: List[str] = field(default_factory=list)
    sentiment: str = "neutral"
    entities: List[str] = field(default_factory=list)
    intent: str = "unknown"

    @classmethod
    def minimal(
        cls, content: str, bucket: str, related: Optional[List[str]] = None
    ) -> "EnrichedContext":
        """Content-derived fallback used when the completion service fails."""
        return cls(
            time_context=bucket,
            summary=content[:SUMMARY_MAX_CHARS],
            related_memories=list(related or []),
        )

    def as_metadata(self) -> Dict[str, Any]:
        return {
            "time_context": self.time_context,
            "summary": self.summary,
            "topics": list(self.topics),
            "related_memories": list(self.related_memories),
            "sentiment": self.sentiment,
            "entities": list(self.entities),
            "intent": self.intent,
        }


@dataclass(frozen=True)
class ProcessingResult:
    intents: List[Intent]
    suggested_actions: List[OutboundEvent]
    enriched_context: EnrichedContext

    @classmethod
    def degraded(
        cls, event: InboundEvent, now: Optional[datetime] = None
    ) -> "ProcessingResult":
        return cls(
            intents=[],
            suggested_actions=[],
            enriched_context=EnrichedContext.minimal(
                event.content, time_context(event.timestamp, now)
            ),
        )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


class _EnrichmentModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: str = Field(min_length=1)
    topics: List[str] = Field(default_factory=list)
    sentiment: Optional[str] = None
    entities: List[str] = Field(default_factory=list)
    intent: Optional[str] = None

    @field_validator("topics", mode="before")
    @classmethod
    def _topics(cls, value: Any) -> Any:
        return _string_list(value) if isinstance(value, list) else value

    @field_validator("entities", mode="before")
    @classmethod
    def _entities(cls, value: Any) -> List[str]:
        return _string_list(value)

    @field_validator("sentiment", "intent", mode="before")
    @classmethod
    def _label(cls, value: Any) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value)


class _ActionSuggestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    selected_action: str = Field(alias="selectedAction", min_length=1)
    confidence: float = Field(allow_inf_nan=False, ge=0.0, le=1.0)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""

    @field_validator("parameters", mode="before")
    @classmethod
    def _params(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning(cls, value: Any) -> str:
        return "" if value is None else str(value)


class EventProcessor:
    """Turns an inbound event and its room into enrichment, intents and actions."""

    def __init__(
        self,
        similarity_index: SimilarityIndex | None,
        intent_extractor: IntentExtractor,
        llm_client: TextCompletionClient,
        action_registry: ActionRegistry,
        *,
        min_action_confidence: float = 0.7,
        related_limit: int = 3,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.similarity_index = similarity_index
        self._room_index = room_scope(similarity_index)
        self.intent_extractor = intent_extractor
        self.llm_client = llm_client
        self.action_registry = action_registry
        self.min_action_confidence = min_action_confidence
        self.related_limit = related_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger or logging.getLogger(__name__)

    async def process(self, event: InboundEvent, room: Room) -> ProcessingResult:
        self.logger.debug(
            "processing_event",
            extra={"event_type": event.kind, "id": event.id, "room_id": room.id},
        )
        try:
            related = await self._related_memories(event, room)
            context = await self._enrich(event, related)
            intents = await self._extract_intents(event)
            actions = await self._generate_actions(intents)
        except Exception as exc:  # pragma: no cover - stages guard themselves
            ERRORS.labels("processor", type(exc).__name__).inc()
            self.logger.exception("processing_failed", extra={"id": event.id})
            return ProcessingResult.degraded(event, self._clock())
        return ProcessingResult(
            intents=intents, suggested_actions=actions, enriched_context=context
        )

    # ------------------------------------------------------------------
    async def _related_memories(self, event: InboundEvent, room: Room) -> List[str]:
        if self._room_index is None or self.related_limit <= 0:
            return []
        try:
            # one extra hit in case the event's own mirrored content comes back
            results = await self._room_index.find_similar_in_room(
                event.content, room.id, self.related_limit + 1
            )
        except Exception as exc:
            ERRORS.labels("processor", type(exc).__name__).inc()
            self.logger.warning(
                "related_memories_failed", extra={"room_id": room.id, "error": str(exc)}
            )
            return []
        related = [r.content for r in results if r.content != event.content]
        return related[: self.related_limit]

    def _parse_enrichment(self, response: Any) -> _EnrichmentModel | None:
        payload, _ = unwrap_response(response)
        data = parse_llm_json(payload)
        if not isinstance(data, dict):
            return None
        try:
            return _EnrichmentModel.model_validate(data)
        except ValidationError:
            return None

    async def _enrich(self, event: InboundEvent, related: List[str]) -> EnrichedContext:
        bucket = time_context(event.timestamp, self._clock())
        prompt = enrichment_prompt(event.content, related)
        try:
            response = await self.llm_client.analyze(
                prompt, CompletionOptions(temperature=0.3, structured_output=True)
            )
            parsed = self._parse_enrichment(response)
            if parsed is None:
                self.logger.warning(
                    "enrichment_parse_failed_retrying",
                    extra={"id": event.id, "payload": str(response)[:500]},
                )
                retry = await self.llm_client.analyze(
                    prompt + STRICT_JSON_SUFFIX,
                    CompletionOptions(temperature=0.2, structured_output=True),
                )
                parsed = self._parse_enrichment(retry)
                if parsed is None:
                    raise ValueError("enrichment response is not valid JSON")
        except Exception as exc:
            ERRORS.labels("processor", type(exc).__name__).inc()
            self.logger.error(
                "enrichment_failed", extra={"id": event.id, "error": str(exc)}
            )
            return EnrichedContext.minimal(event.content, bucket, related)

        return EnrichedContext(
            time_context=bucket,
            summary=parsed.summary,
            topics=list(parsed.topics),
            related_memories=list(related),
            sentiment=parsed.sentiment or "neutral",
            entities=list(parsed.entities),
            intent=parsed.intent or "unknown",
        )

    async def _extract_intents(self, event: InboundEvent) -> List[Intent]:
        try:
            return list(await self.intent_extractor.extract(event.content))
        except Exception as exc:
            ERRORS.labels("intent_extractor", type(exc).__name__).inc()
            self.logger.error(
                "intent_extraction_failed", extra={"id": event.id, "error": str(exc)}
            )
            return []

    # ------------------------------------------------------------------
    async def _generate_actions(self, intents: List[Intent]) -> List[OutboundEvent]:
        if not intents:
            return []
        available = self.action_registry.get_available_actions()
        catalog = [(kind, descriptor.prompt_view()) for kind, descriptor in available.items()]

        actions: List[OutboundEvent] = []
        for intent in intents:
            try:
                outbound = await self._suggest_action(intent, catalog)
            except Exception as exc:
                ERRORS.labels("processor", type(exc).__name__).inc()
                self.logger.error(
                    "action_generation_failed",
                    extra={"intent": intent.kind, "error": str(exc)},
                )
                continue
            if outbound is not None:
                actions.append(outbound)
        return actions

    async def _suggest_action(
        self, intent: Intent, catalog: List[tuple[str, Dict[str, Any]]]
    ) -> OutboundEvent | None:
        prompt = action_selection_prompt(
            intent.kind, intent.confidence, intent.parameters, catalog
        )
        response = await self.llm_client.analyze(
            prompt, CompletionOptions(temperature=0.3, structured_output=True)
        )
        payload, _ = unwrap_response(response)
        data = parse_llm_json(payload)
        if not isinstance(data, dict):
            ERRORS.labels("processor", "Parse").inc()
            self.logger.warning(
                "action_parse_failed",
                extra={"intent": intent.kind, "payload": str(payload)[:500]},
            )
            return None
        try:
            suggestion = _ActionSuggestion.model_validate(data)
        except ValidationError as exc:
            self.logger.warning(
                "action_invalid", extra={"intent": intent.kind, "error": str(exc)}
            )
            return None

        if not suggestion.confidence >= self.min_action_confidence:
            self.logger.debug(
                "action_confidence_too_low",
                extra={
                    "intent": intent.kind,
                    "selected_action": suggestion.selected_action,
                    "confidence": suggestion.confidence,
                },
            )
            return None

        descriptor = self.action_registry.get_action_definition(suggestion.selected_action)
        if descriptor is None:
            self.logger.warning(
                "unknown_action",
                extra={"intent": intent.kind, "selected_action": suggestion.selected_action},
            )
            return None

        missing = descriptor.missing_parameters(suggestion.parameters)
        if missing:
            self.logger.warning(
                "action_missing_parameters",
                extra={"intent": intent.kind, "selected_action": descriptor.kind, "missing": missing},
            )
            return None

        return self._to_outbound(intent, descriptor, suggestion)

    def _to_outbound(
        self, intent: Intent, descriptor: ActionDescriptor, suggestion: _ActionSuggestion
    ) -> OutboundEvent:
        params = dict(suggestion.parameters)
        event = build_outbound_event(
            descriptor.event_kind,
            descriptor.client_id,
            str(params.get("content", "")),
            {
                **params,
                "action": descriptor.kind,
                "intent": intent.kind,
                "confidence": suggestion.confidence,
                "reasoning": suggestion.reasoning,
                "originalParameters": dict(intent.parameters),
            },
        )
        self.logger.debug(
            "action_generated",
            extra={
                "intent": intent.kind,
                "selected_action": descriptor.kind,
                "confidence": suggestion.confidence,
            },
        )
        return event


__all__ = [
    "EnrichedContext",
    "EventProcessor",
    "ProcessingResult",
    "RECENCY_BUCKETS",
    "recency_bucket",
    "time_context",
]
