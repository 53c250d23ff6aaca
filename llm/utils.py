"""Utilities for working with LLM client responses."""

from __future__ import annotations

from typing import Any, Tuple


def unwrap_response(result: Any) -> Tuple[Any, Any | None]:
    """Extract the usable payload from a raw completion container.

    ``analyze`` is expected to return either text or an already parsed
    structure. Some clients wrap the payload, e.g. ``(text, history)`` tuples
    or objects exposing ``.text``. This helper normalises those outputs so
    callers receive a string, dict or list while still accessing the optional
    additional payload.

    Returns
    -------
    Tuple[Any, Any | None]
        The payload (``str``, ``dict`` or ``list``; ``""`` when it cannot be
        determined) and the optional extra data.
    """

    extra: Any | None = None
    payload: Any = result

    if isinstance(result, tuple):
        if result:
            payload = result[0]
            if len(result) > 1:
                extra = result[1]
        else:
            payload = ""
    elif hasattr(result, "text") and not isinstance(result, (str, dict, list)):
        payload = getattr(result, "text")

    if payload is None:
        return "", extra
    if isinstance(payload, (str, dict, list)):
        return payload, extra
    return str(payload), extra
