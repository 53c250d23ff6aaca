"""Timer-driven generator of self-initiated events."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.utils.json_io import parse_llm_json
from events.models import EventSink, InternalThought
from llm.base_client import CompletionOptions, TextCompletionClient
from llm.prompts import thought_prompt
from llm.utils import unwrap_response
from memory.room_manager import RoomManager
from metrics import ERRORS
from tasks.scheduler import TaskScheduler


class _ThoughtModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    thought: str = Field(min_length=1)
    confidence: float = Field(allow_inf_nan=False, ge=0.0, le=1.0)
    reasoning: str = ""
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("context", mode="before")
    @classmethod
    def _context(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning(cls, value: Any) -> str:
        return "" if value is None else str(value)


class Consciousness:
    """Periodically samples recent memories and emits internal thoughts.

    Two states: stopped and running. ``start`` and ``stop`` are idempotent.
    A tick that fails is logged and the timer keeps going; an emit started by
    a tick runs to completion even if ``stop`` is called meanwhile.
    """

    def __init__(
        self,
        dispatcher: EventSink,
        llm_client: TextCompletionClient,
        room_manager: RoomManager,
        *,
        min_confidence: float = 0.7,
        per_room: int = 5,
        memory_limit: int = 10,
        temperature: float = 0.7,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.llm_client = llm_client
        self.room_manager = room_manager
        self.min_confidence = min_confidence
        self.per_room = per_room
        self.memory_limit = memory_limit
        self.temperature = temperature
        self.logger = logger or logging.getLogger(__name__)
        self._scheduler: TaskScheduler | None = None
        self._inflight: Set[asyncio.Task[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self, interval: float = 60.0) -> None:
        """Begin thinking every ``interval`` seconds; the first tick waits one interval."""

        if interval <= 0:
            raise ValueError("interval must be positive")
        if self._scheduler is not None:
            self.logger.debug("consciousness_already_running")
            return
        scheduler = TaskScheduler("consciousness")
        scheduler.add_periodic(self._tick, interval, initial_delay=interval)
        scheduler.start()
        self._scheduler = scheduler
        self.logger.info("consciousness_started", extra={"interval": interval})

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        scheduler, self._scheduler = self._scheduler, None
        await scheduler.stop()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        self.logger.info("consciousness_stopped")

    async def _tick(self) -> None:
        await self.think()

    async def think(self) -> Optional[InternalThought]:
        """Run one thinking cycle; return the emitted thought, if any."""

        memories = self.room_manager.recent_memories(
            per_room=self.per_room, limit=self.memory_limit
        )
        prompt = thought_prompt([m.content for m in memories])
        try:
            response = await self.llm_client.analyze(
                prompt,
                CompletionOptions(temperature=self.temperature, structured_output=True),
            )
        except Exception as exc:
            ERRORS.labels("consciousness", type(exc).__name__).inc()
            self.logger.error("thought_generation_failed", extra={"error": str(exc)})
            return None

        payload, _ = unwrap_response(response)
        data = parse_llm_json(payload)
        if not isinstance(data, dict):
            ERRORS.labels("consciousness", "Parse").inc()
            self.logger.warning(
                "thought_parse_failed", extra={"payload": str(payload)[:500]}
            )
            return None
        try:
            parsed = _ThoughtModel.model_validate(data)
        except ValidationError as exc:
            self.logger.warning("thought_invalid", extra={"error": str(exc)})
            return None

        if not parsed.confidence >= self.min_confidence:
            self.logger.debug(
                "thought_below_threshold", extra={"confidence": parsed.confidence}
            )
            return None

        thought = InternalThought(
            content=parsed.thought,
            metadata={
                **parsed.context,
                "reasoning": parsed.reasoning,
                "confidence": parsed.confidence,
            },
        )
        self.logger.debug(
            "thought_emitted", extra={"id": thought.id, "confidence": parsed.confidence}
        )
        task = asyncio.create_task(self.dispatcher.emit(thought))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        await asyncio.shield(task)
        return thought


__all__ = ["Consciousness"]
