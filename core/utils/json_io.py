from __future__ import annotations

import json
import re
from typing import Any

_CODE_BLOCK_RE = re.compile(r"^```[\w-]*[ \t]*\n?(?P<content>.*?)\n?```$", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence (with optional language tag)."""

    stripped = text.strip()
    match = _CODE_BLOCK_RE.match(stripped)
    if match:
        return match.group("content").strip()
    return stripped


def extract_json_block(text: str) -> str | None:
    """Return the outermost ``{...}`` (or ``[...]``) span found in ``text``."""

    match = _OBJECT_RE.search(text) or _ARRAY_RE.search(text)
    return match.group(0) if match else None


def _loads(text: str) -> Any | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    if isinstance(data, (dict, list)):
        return data
    return None


def parse_llm_json(raw: Any) -> dict[str, Any] | list[Any] | None:
    """Parse JSON from LLM output.

    Fallback order: strip a fenced block, parse directly, extract the
    outermost brace-delimited span and parse that. Completion clients that
    already return a parsed structure are passed through unchanged. Returns
    ``None`` when nothing usable can be recovered.
    """

    if isinstance(raw, (dict, list)):
        return raw
    if raw is None:
        return None

    text = strip_code_fence(str(raw))
    if not text:
        return None

    data = _loads(text)
    if data is not None:
        return data

    block = extract_json_block(text)
    if block is None:
        return None
    return _loads(block)


__all__ = ["parse_llm_json", "strip_code_fence", "extract_json_block"]
