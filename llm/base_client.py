"""Common protocol for LLM clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, TypedDict, Union, runtime_checkable


class ConversationMessage(TypedDict):
    """Single message in a chat request."""

    role: str
    content: str


ConversationHistory = List[ConversationMessage]

CompletionResult = Union[str, Dict[str, Any], List[Any]]


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call sampling and formatting options.

    ``structured_output`` asks the backend for a JSON response when it can
    enforce one; callers still validate the output themselves.
    """

    temperature: float | None = None
    max_tokens: int | None = None
    structured_output: bool = False
    system_persona: str | None = None


@runtime_checkable
class TextCompletionClient(Protocol):
    """Abstract client capable of analysing a prompt via a language model.

    No contract on latency or determinism: the returned text (or parsed
    structure) must be treated as untrusted.
    """

    async def analyze(
        self, prompt: str, options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Return a completion for ``prompt``."""


@runtime_checkable
class EmbeddingsClient(Protocol):
    """Client capable of producing embeddings for a given text."""

    async def embed(self, text: str) -> List[float]:
        """Return an embedding vector for ``text``."""


def build_messages(
    prompt: str, options: Optional[CompletionOptions] = None
) -> ConversationHistory:
    """Compose an OpenAI-style message list with an optional system persona."""

    messages: ConversationHistory = []
    if options is not None and options.system_persona:
        messages.append({"role": "system", "content": options.system_persona})
    messages.append({"role": "user", "content": prompt})
    return messages
