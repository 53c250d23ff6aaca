"""Decision-making components: pipeline, intent extraction and the autonomous loop."""

from .consciousness import Consciousness
from .intent import Intent, IntentExtractor, LLMIntentExtractor
from .processor import (
    EnrichedContext,
    EventProcessor,
    ProcessingResult,
    recency_bucket,
    time_context,
)

__all__ = [
    "Consciousness",
    "EnrichedContext",
    "EventProcessor",
    "Intent",
    "IntentExtractor",
    "LLMIntentExtractor",
    "ProcessingResult",
    "recency_bucket",
    "time_context",
]
