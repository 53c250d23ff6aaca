"""Client for interacting with a local Ollama model."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from metrics import ERRORS, LLM_LATENCY, LLM_TOKENS_INFLIGHT

from .base_client import CompletionOptions, CompletionResult, build_messages

logger = logging.getLogger(__name__)


class OllamaClient:
    """Minimal async wrapper over the Ollama HTTP API.

    Parameters
    ----------
    model: str
        Name of the model registered in the local Ollama instance.
    host: str
        Host where the Ollama service is listening.
    port: int
        Port of the service. By default the official service uses ``11434``.
    keep_alive: str
        How long to keep the model loaded in memory (e.g., "5m", "30m", "1h").
    num_ctx: int
        Context window size in tokens.
    timeout_seconds: float
        Total HTTP timeout for one request.
    """

    def __init__(
        self,
        model: str = "llama3.1:8b",
        host: str = "localhost",
        port: int = 11434,
        keep_alive: str = "5m",
        num_ctx: int = 8192,
        timeout_seconds: float = 1200.0,
    ) -> None:
        self.model = model
        self.base_url = f"http://{host}:{port}"
        self._url_native_chat = f"{self.base_url}/api/chat"
        self._url_native_generate = f"{self.base_url}/api/generate"
        self.keep_alive = keep_alive
        self.num_ctx = num_ctx
        self.timeout_seconds = timeout_seconds

    async def analyze(
        self, prompt: str, options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Return the model's reply to ``prompt``.

        Any errors in the HTTP request are logged and re-raised.
        """
        opts = options or CompletionOptions()
        t0 = time.perf_counter()
        LLM_TOKENS_INFLIGHT.labels("in").inc()

        try:
            model_options: Dict[str, Any] = {"num_ctx": self.num_ctx}
            if opts.temperature is not None:
                model_options["temperature"] = opts.temperature
            if opts.max_tokens is not None:
                model_options["num_predict"] = opts.max_tokens

            chat_payload: Dict[str, Any] = {
                "model": self.model,
                "messages": build_messages(prompt, opts),
                "stream": False,
                "keep_alive": self.keep_alive,
                "options": model_options,
            }
            legacy_payload: Dict[str, Any] = {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "keep_alive": self.keep_alive,
                "options": model_options,
            }
            if opts.system_persona:
                legacy_payload["system"] = opts.system_persona
            if opts.structured_output:
                chat_payload["format"] = "json"
                legacy_payload["format"] = "json"

            logger.debug("Sending prompt to Ollama: %s", prompt)
            data = await self._request_with_fallback(
                (
                    (self._url_native_chat, chat_payload),
                    (self._url_native_generate, legacy_payload),
                )
            )
            return self._extract_response_text(data)
        except Exception as e:
            ERRORS.labels(component="llm", etype=type(e).__name__).inc()
            raise
        finally:
            LLM_TOKENS_INFLIGHT.labels("in").dec()
            LLM_LATENCY.labels(model=self.model, phase="analyze").observe(
                time.perf_counter() - t0
            )

    async def _request_with_fallback(
        self, endpoints: tuple[tuple[str, Dict[str, Any]], ...]
    ) -> Dict[str, Any]:
        """Try a sequence of endpoints until one succeeds."""

        last_error: Exception | None = None
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            for url, payload in endpoints:
                try:
                    logger.debug(f"Trying endpoint: {url}")
                    async with session.post(url, json=payload) as resp:
                        if resp.status in {404, 405}:
                            logger.debug(f"Endpoint {url} not available: {resp.status}")
                            continue
                        resp.raise_for_status()
                        return await resp.json(content_type=None)
                except aiohttp.ClientError as exc:
                    logger.debug(f"Request error for {url}: {exc}")
                    last_error = exc
                    continue

        if last_error is not None:
            raise RuntimeError(f"Ollama request failed: {last_error}") from last_error
        raise RuntimeError("Ollama request failed: no available endpoints")

    @staticmethod
    def _extract_response_text(data: Dict[str, Any]) -> str:
        """Extract assistant text from Ollama or OpenAI-style responses."""

        if not isinstance(data, dict):
            return ""

        if "message" in data and isinstance(data["message"], dict):
            return str(data["message"].get("content", ""))

        if "response" in data:
            return str(data.get("response", ""))

        choices = data.get("choices", [])
        if choices:
            message = choices[0].get("message", {})
            if isinstance(message, dict):
                return str(message.get("content", ""))

        return ""
