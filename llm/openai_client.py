"""Client for OpenAI-compatible chat endpoints (LM Studio, vLLM, OpenAI)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from metrics import ERRORS, LLM_LATENCY, LLM_TOKENS_INFLIGHT

from .base_client import CompletionOptions, CompletionResult, build_messages

logger = logging.getLogger(__name__)

DEFAULT_PERSONA = (
    "You are a helpful AI assistant. "
    "Follow the user's instructions carefully and provide accurate responses. "
    "Use the format requested by the user."
)


class OpenAICompatibleClient:
    """Minimal client for ``/v1/chat/completions``.

    Requests are retried with exponential backoff on transport errors and
    serialised through ``max_concurrency`` to avoid overloading local
    servers.
    """

    def __init__(
        self,
        model: str,
        host: str = "127.0.0.1",
        port: int = 1234,
        api_key: Optional[str] = None,
        *,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 3,
        max_concurrency: int = 1,
        timeout_seconds: float = 1200.0,
    ) -> None:
        self.model = model
        self.base_url = (base_url or f"http://{host}:{port}/v1").rstrip("/")
        self.api_key = api_key
        self.default_temperature = temperature
        self.default_max_tokens = max_tokens
        self.max_retries = max(1, max_retries)
        self.timeout_seconds = timeout_seconds
        self._sem = asyncio.Semaphore(max_concurrency if max_concurrency > 0 else 1)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _payload(self, prompt: str, opts: CompletionOptions) -> Dict[str, Any]:
        if not opts.system_persona:
            opts = CompletionOptions(
                temperature=opts.temperature,
                max_tokens=opts.max_tokens,
                structured_output=opts.structured_output,
                system_persona=DEFAULT_PERSONA,
            )
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(prompt, opts),
            "stream": False,
        }
        temperature = opts.temperature if opts.temperature is not None else self.default_temperature
        if temperature is not None:
            payload["temperature"] = temperature
        max_tokens = opts.max_tokens if opts.max_tokens is not None else self.default_max_tokens
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if opts.structured_output:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def analyze(
        self, prompt: str, options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Return the assistant message for ``prompt``."""
        opts = options or CompletionOptions()
        t0 = time.perf_counter()
        LLM_TOKENS_INFLIGHT.labels("in").inc()
        url = f"{self.base_url}/chat/completions"
        payload = self._payload(prompt, opts)

        try:
            for attempt in range(self.max_retries):
                try:
                    logger.debug(
                        "Sending chat prompt (attempt %d/%d): %s",
                        attempt + 1,
                        self.max_retries,
                        prompt,
                    )
                    async with self._sem:
                        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
                        async with aiohttp.ClientSession(timeout=timeout) as session:
                            async with session.post(
                                url, json=payload, headers=self._headers()
                            ) as resp:
                                resp.raise_for_status()
                                data = await resp.json(content_type=None)
                    choices: List[Dict[str, Any]] = data.get("choices", [])
                    if choices and "message" in choices[0]:
                        return str(choices[0]["message"].get("content", ""))
                    raise RuntimeError("Chat response missing choices or message")
                except aiohttp.ClientError as exc:
                    if attempt < self.max_retries - 1:
                        logger.warning(
                            "Chat request failed (attempt %d/%d): %s, retrying...",
                            attempt + 1,
                            self.max_retries,
                            exc,
                        )
                        await asyncio.sleep(min(1.0 * (2**attempt), 4.0))
                        continue
                    raise RuntimeError(
                        f"Chat request failed after {self.max_retries} attempts: {exc}"
                    ) from exc
            raise RuntimeError("Chat request failed without a response")
        except Exception as e:
            ERRORS.labels(component="llm", etype=type(e).__name__).inc()
            raise
        finally:
            LLM_TOKENS_INFLIGHT.labels("in").dec()
            LLM_LATENCY.labels(model=self.model, phase="analyze").observe(
                time.perf_counter() - t0
            )
