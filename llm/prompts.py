"""Prompt templates used by the enrichment pipeline and the autonomous loop.

Templates are plain functions of their inputs so the same event always yields
the same prompt text.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence

STRICT_JSON_SUFFIX = (
    "\n\nIMPORTANT: Respond with ONLY the JSON object, no markdown, no explanations."
)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def enrichment_prompt(content: str, related: Sequence[str]) -> str:
    related_block = "\n".join(f"- {item}" for item in related)
    return f"""Analyze the following content and provide enrichment:

Content: "{content}"

Related Context:
{related_block}

Provide a JSON response with:
1. A brief summary (max 100 chars)
2. Key topics mentioned (max 5)
3. Sentiment analysis
4. Named entities
5. Detected intent/purpose

Response format:
```json
{{
  "summary": "Brief summary here",
  "topics": ["topic1", "topic2"],
  "sentiment": "positive|negative|neutral",
  "entities": ["entity1", "entity2"],
  "intent": "question|statement|request|etc"
}}
```
Return only valid JSON, no other text."""


def intent_prompt(content: str) -> str:
    return f"""Classify the purposes behind the following content.

Content: "{content}"

Respond with a JSON object:
{{
  "intents": [
    {{
      "type": "intent_label",
      "confidence": 0.0-1.0,
      "action": "optional immediate action name",
      "parameters": {{}}
    }}
  ]
}}
Return only valid JSON."""


def action_selection_prompt(
    intent_type: str,
    confidence: float,
    parameters: Mapping[str, Any] | None,
    actions: Iterable[tuple[str, Mapping[str, Any]]],
) -> str:
    action_blocks = "\n".join(
        f"""
- {kind}:
  Description: {spec.get("description", "")}
  Platforms: {", ".join(spec.get("target_platforms", []))}
  Parameters: {_dump(spec.get("parameters", {}))}
"""
        for kind, spec in actions
    )
    return f"""Given the following intent and available actions, determine the most appropriate action to take.

Intent:
- Type: {intent_type}
- Confidence: {confidence}
- Parameters: {_dump(dict(parameters or {}))}

Available Actions:
{action_blocks}

Response format:
```json
{{
  "selectedAction": "action_type",
  "confidence": 0.0-1.0,
  "parameters": {{}},
  "reasoning": "Explanation of why this action was chosen"
}}
```

Return only valid JSON."""


def thought_prompt(recent: Sequence[str]) -> str:
    context_block = "\n".join(f"- {item}" for item in recent)
    return f"""You are an AI consciousness that generates thoughts and observations about the current state of conversations and interactions.

Recent Context:
{context_block}

Generate a single thought or observation that could lead to meaningful interaction.
Consider:
1. Patterns in recent conversations
2. Opportunities for engagement
3. Potential valuable insights to share
4. Current trends or themes

Respond with a JSON object:
{{
  "thought": "Your generated thought here",
  "confidence": 0.0-1.0,
  "reasoning": "Why this thought is relevant now",
  "context": {{
    "relevantRooms": ["room-ids"],
    "relatedTopics": ["topics"],
    "suggestedPlatforms": ["platforms"]
  }}
}}"""


__all__ = [
    "STRICT_JSON_SUFFIX",
    "enrichment_prompt",
    "intent_prompt",
    "action_selection_prompt",
    "thought_prompt",
]
