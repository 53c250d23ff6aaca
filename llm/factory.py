"""Factory for creating LLM clients based on configuration."""

from __future__ import annotations

from typing import Any, Dict

from .base_client import TextCompletionClient
from .ollama_client import OllamaClient
from .openai_client import OpenAICompatibleClient


def create_llm_client(
    provider: str,
    llm_cfg: Dict[str, Any] | None = None,
) -> TextCompletionClient:
    """Return a completion client for ``provider``.

    Parameters
    ----------
    provider:
        Name of the backend: ``"openai"``, ``"lmstudio"`` or ``"ollama"``.
        Unknown values default to Ollama.
    llm_cfg:
        Settings for the chosen provider (the ``llm`` section of
        ``settings.yaml``).
    """

    llm_cfg = llm_cfg or {}
    provider = (provider or "").lower()

    if provider in ("openai", "lmstudio"):
        return OpenAICompatibleClient(
            model=llm_cfg.get("model", ""),
            host=llm_cfg.get("host", "127.0.0.1"),
            port=int(llm_cfg.get("port", 1234)),
            api_key=llm_cfg.get("api_key") or None,
            base_url=llm_cfg.get("base_url") or None,
            temperature=llm_cfg.get("temperature"),
            max_tokens=llm_cfg.get("max_tokens"),
            max_concurrency=int(llm_cfg.get("max_concurrency", 1)),
            timeout_seconds=float(llm_cfg.get("timeout_seconds", 1200)),
        )

    # Default to Ollama
    return OllamaClient(
        model=llm_cfg.get("model") or "llama3.1:8b",
        host=llm_cfg.get("host", "localhost"),
        port=int(llm_cfg.get("port", 11434)),
        keep_alive=llm_cfg.get("keep_alive", "5m"),
        num_ctx=int(llm_cfg.get("num_ctx", 8192)),
        timeout_seconds=float(llm_cfg.get("timeout_seconds", 1200)),
    )
