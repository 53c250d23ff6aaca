from __future__ import annotations

import asyncio
import json as _json
import logging
import os
import signal
from typing import Any, Dict

from actions import ActionCatalog
from agent import Consciousness, EventProcessor, LLMIntentExtractor
from clients import ConsoleClient
from config import load_config
from core import Dispatcher
from events.models import EventKind, InboundEvent
from llm import create_llm_client
from memory import InMemorySimilarityIndex, RoomManager

# --- Logging setup -----------------------------------------------------------
log_level_str = os.getenv("LOGLEVEL", "INFO").upper()
log_level = getattr(logging, log_level_str, logging.INFO)


class _ExtraContextFormatter(logging.Formatter):
    """Formatter that appends known extra fields as JSON context.

    Falls back to plain message if nothing extra is provided.
    """

    _known = {
        "id",
        "error",
        "error_type",
        "event_type",
        "handler",
        "payload",
        "source",
        "target",
        "client_id",
        "room_id",
        "intent",
        "selected_action",
        "confidence",
        "missing",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base = super().format(record)
        data = {}
        for k in sorted(self._known):
            if hasattr(record, k):
                v = getattr(record, k)
                if isinstance(v, str) and len(v) > 1000:
                    v = v[:1000] + "..."
                data[k] = v
        if data:
            return f"{base} | ctx: " + _json.dumps(data, ensure_ascii=False, default=str)
        return base


def configure_logging(level: int = log_level) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(
        _ExtraContextFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root.addHandler(handler)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)
# ---------------------------------------------------------------------------


def build_runtime(cfg: Dict[str, Any]) -> tuple[Dispatcher, Consciousness]:
    """Wire collaborators from configuration."""

    llm_cfg = cfg.get("llm", {})
    llm_client = create_llm_client(llm_cfg.get("provider", "ollama"), llm_cfg)

    sim_cfg = cfg.get("similarity", {})
    index = InMemorySimilarityIndex(
        min_similarity=float(sim_cfg.get("min_similarity", 0.0)),
        dim=int(sim_cfg.get("dim", 64)),
    )
    room_manager = RoomManager(index)

    pipeline_cfg = cfg.get("pipeline", {})
    processor = EventProcessor(
        index,
        LLMIntentExtractor(llm_client),
        llm_client,
        ActionCatalog(),
        min_action_confidence=float(pipeline_cfg.get("min_action_confidence", 0.7)),
        related_limit=int(pipeline_cfg.get("related_memories", 3)),
    )
    dispatcher = Dispatcher(room_manager, processor)

    c_cfg = cfg.get("consciousness", {})
    consciousness = Consciousness(
        dispatcher,
        llm_client,
        room_manager,
        min_confidence=float(c_cfg.get("min_confidence", 0.7)),
        per_room=int(c_cfg.get("per_room", 5)),
        memory_limit=int(c_cfg.get("memory_limit", 10)),
    )
    return dispatcher, consciousness


async def _log_enriched(event: InboundEvent) -> None:
    logger.info(
        "event_processed",
        extra={
            "id": event.id,
            "event_type": event.kind,
            "room_id": event.metadata.get("room_id"),
            "intent": event.metadata.get("intent"),
        },
    )


async def main() -> None:
    configure_logging()
    cfg = load_config()

    dispatcher, consciousness = build_runtime(cfg)
    for kind in (EventKind.CONSOLE_MESSAGE, EventKind.INTERNAL_THOUGHT):
        dispatcher.on(kind, _log_enriched)

    console_cfg = cfg.get("clients", {}).get("console", {})
    if console_cfg.get("enabled", True):
        dispatcher.register_client(
            ConsoleClient(
                dispatcher,
                poll_interval=float(console_cfg.get("poll_interval", 0.1)),
                username=str(console_cfg.get("username", "operator")),
            )
        )

    c_cfg = cfg.get("consciousness", {})
    if c_cfg.get("enabled", True):
        consciousness.start(float(c_cfg.get("interval_seconds", 60)))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - windows
            pass

    logger.info("startup_complete", extra={"client_id": ",".join(dispatcher.clients)})
    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("shutdown_requested")
    finally:
        await consciousness.stop()
        await dispatcher.shutdown()
        logger.info("shutdown_complete")


def run() -> None:  # pragma: no cover - script entry
    asyncio.run(main())


if __name__ == "__main__":  # pragma: no cover - script entry
    run()
