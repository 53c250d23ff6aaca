"""Intent classification through the completion service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.utils.json_io import parse_llm_json
from llm.base_client import CompletionOptions, TextCompletionClient
from llm.prompts import intent_prompt
from llm.utils import unwrap_response


@dataclass(frozen=True)
class Intent:
    """Classified purpose of a piece of content.

    ``action`` names an immediate, core-local side effect the dispatcher
    should run; ``parameters`` carries whatever the classifier extracted.
    """

    kind: str
    confidence: float
    action: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)


class IntentExtractor(Protocol):
    async def extract(self, content: str, prompt: Optional[str] = None) -> List[Intent]:
        """Return intents found in ``content`` ordered by confidence."""


class _IntentModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: str = Field(alias="type", min_length=1)
    confidence: float = 0.0
    action: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, number))

    @field_validator("action", mode="before")
    @classmethod
    def _blank_action(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("parameters", mode="before")
    @classmethod
    def _params(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class LLMIntentExtractor:
    """Extract intents by asking the completion service to classify content.

    Accepts ``{"intents": [...]}`` or a bare list. Entries that fail
    validation are dropped; an unparseable response yields no intents.
    """

    def __init__(
        self,
        llm_client: TextCompletionClient,
        *,
        temperature: float = 0.2,
        logger: logging.Logger | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.temperature = temperature
        self.logger = logger or logging.getLogger(__name__)

    async def extract(self, content: str, prompt: Optional[str] = None) -> List[Intent]:
        response = await self.llm_client.analyze(
            prompt or intent_prompt(content),
            CompletionOptions(temperature=self.temperature, structured_output=True),
        )
        payload, _ = unwrap_response(response)
        data = parse_llm_json(payload)
        if isinstance(data, dict):
            raw_items = data.get("intents", [])
        elif isinstance(data, list):
            raw_items = data
        else:
            self.logger.warning(
                "intent_parse_failed", extra={"payload": str(payload)[:500]}
            )
            return []

        intents: List[Intent] = []
        for item in raw_items if isinstance(raw_items, list) else []:
            if not isinstance(item, dict):
                continue
            try:
                model = _IntentModel.model_validate(item)
            except ValidationError as exc:
                self.logger.debug("intent_dropped", extra={"error": str(exc)})
                continue
            intents.append(
                Intent(
                    kind=model.kind,
                    confidence=model.confidence,
                    action=model.action,
                    parameters=dict(model.parameters),
                )
            )
        intents.sort(key=lambda i: i.confidence, reverse=True)
        return intents


__all__ = ["Intent", "IntentExtractor", "LLMIntentExtractor"]
