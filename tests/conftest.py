"""Shared fixtures: scripted completion client and a wired dispatcher."""

import os

os.environ.setdefault("METRICS_NOOP", "1")

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from actions import ActionCatalog  # noqa: E402
from agent import EventProcessor, LLMIntentExtractor  # noqa: E402
from core.dispatcher import Dispatcher  # noqa: E402
from llm.base_client import CompletionOptions  # noqa: E402
from memory import InMemorySimilarityIndex, RoomManager  # noqa: E402

PHASE_PREFIXES = {
    "enrichment": "Analyze the following content",
    "intent": "Classify the purposes",
    "action": "Given the following intent",
    "thought": "You are an AI consciousness",
}


class ScriptedLLM:
    """Completion client replaying canned responses per prompt phase.

    Each phase holds a list of responses consumed in order; the last one
    repeats. An exception instance in the list is raised instead of returned.
    """

    def __init__(self, **responses: List[Any]) -> None:
        self.responses: Dict[str, List[Any]] = {k: list(v) for k, v in responses.items()}
        self.calls: List[tuple[str, str, Optional[CompletionOptions]]] = []

    @staticmethod
    def phase_of(prompt: str) -> str:
        for phase, prefix in PHASE_PREFIXES.items():
            if prompt.startswith(prefix):
                return phase
        return "other"

    async def analyze(self, prompt: str, options: Optional[CompletionOptions] = None) -> Any:
        phase = self.phase_of(prompt)
        self.calls.append((phase, prompt, options))
        queue = self.responses.get(phase)
        if not queue:
            return ""
        value = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(value, Exception):
            raise value
        return value

    def count(self, phase: str) -> int:
        return sum(1 for p, _, _ in self.calls if p == phase)

    def calls_for(self, phase: str) -> List[tuple[str, Optional[CompletionOptions]]]:
        return [(prompt, opts) for p, prompt, opts in self.calls if p == phase]


class RecordingClient:
    """Client double that records delivered outbound events."""

    def __init__(self, client_id: str, kind: str | None = None) -> None:
        self.id = client_id
        self.kind = kind or client_id
        self.delivered: List[Any] = []
        self.listening = False
        self.stopped = False

    async def listen(self) -> None:
        self.listening = True

    async def stop(self) -> None:
        self.stopped = True

    async def emit(self, event: Any) -> None:
        self.delivered.append(event)


@pytest.fixture
def make_llm():
    return ScriptedLLM


@pytest.fixture
def make_client():
    return RecordingClient


@pytest.fixture
def build_dispatcher():
    """Return a factory wiring a dispatcher around a scripted LLM."""

    def _build(llm: ScriptedLLM, *, index: Any = "default") -> Dispatcher:
        sim = InMemorySimilarityIndex() if index == "default" else index
        room_manager = RoomManager(sim)
        processor = EventProcessor(
            sim,
            LLMIntentExtractor(llm),
            llm,
            ActionCatalog(),
        )
        return Dispatcher(room_manager, processor)

    return _build
