"""LLM client utilities."""

from .base_client import CompletionOptions, EmbeddingsClient, TextCompletionClient
from .factory import create_llm_client
from .ollama_client import OllamaClient
from .openai_client import OpenAICompatibleClient

__all__ = [
    "CompletionOptions",
    "EmbeddingsClient",
    "TextCompletionClient",
    "create_llm_client",
    "OllamaClient",
    "OpenAICompatibleClient",
]
