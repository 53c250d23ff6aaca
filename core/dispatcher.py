from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, Mapping, Set

from agent.processor import EventProcessor, ProcessingResult
from events.models import Event, EventKind, InboundEvent, OutboundEvent
from memory.room import Room
from memory.room_manager import RoomManager
from metrics import ERRORS, EVENTS_TOTAL, ROUTING_DROPS

from .routing import resolve_room_context

if TYPE_CHECKING:  # pragma: no cover
    from agent.intent import Intent
    from clients.base import Client

LOGGER = logging.getLogger("dispatcher")
DLQ_LOGGER = logging.getLogger("dispatcher.dlq")

Handler = Callable[[InboundEvent], Awaitable[None]]
IntentActionHandler = Callable[["Intent", InboundEvent, Room], Awaitable[None]]


def _kind_key(kind: str | EventKind) -> str:
    return kind.value if isinstance(kind, EventKind) else str(kind)


class Dispatcher:
    """Event bus between clients and the processing pipeline.

    ``emit`` is the single entry point for inbound events. It awaits each
    stage in order (room, memory, pipeline, intent actions, outbound routing,
    local handlers) and returns only when all of them finished. Outbound
    events addressed to an unknown client are logged and dropped.
    """

    def __init__(
        self,
        room_manager: RoomManager,
        processor: EventProcessor,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.room_manager = room_manager
        self.processor = processor
        self.logger = logger or LOGGER
        self._clients: Dict[str, "Client"] = {}
        self._listen_tasks: Dict[str, asyncio.Task[Any]] = {}
        self._retiring: Set[asyncio.Task[None]] = set()
        self._handlers: Dict[str, Set[Handler]] = {}
        self._intent_actions: Dict[str, IntentActionHandler] = {}

    # ------------------------------------------------------------------
    # clients
    @property
    def clients(self) -> Mapping[str, "Client"]:
        return MappingProxyType(self._clients)

    def get_client(self, client_id: str) -> "Client | None":
        return self._clients.get(client_id)

    def register_client(self, client: "Client") -> None:
        """Store ``client`` under its id and start its listen loop.

        A client already registered under the same id is stopped in the
        background before the new one takes its place.
        """

        if self._clients.get(client.id) is client:
            self.logger.debug("client_already_registered", extra={"client_id": client.id})
            return
        previous = self._clients.pop(client.id, None)
        previous_task = self._listen_tasks.pop(client.id, None)
        if previous is not None:
            self.logger.warning("client_replaced", extra={"client_id": client.id})
            retire = asyncio.create_task(
                self._retire(client.id, previous, previous_task),
                name=f"retire-{client.id}",
            )
            self._retiring.add(retire)
            retire.add_done_callback(self._retiring.discard)
        self._clients[client.id] = client
        task = asyncio.create_task(client.listen(), name=f"listen-{client.id}")
        self._listen_tasks[client.id] = task
        task.add_done_callback(
            lambda t, cid=client.id, kind=client.kind: self._on_listen_done(cid, kind, t)
        )
        self.logger.info(
            "client_registered", extra={"client_id": client.id, "client_kind": client.kind}
        )

    def _on_listen_done(self, client_id: str, kind: str, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            ERRORS.labels("client", type(exc).__name__).inc()
            self.logger.error(
                "client_listen_failed",
                extra={"client_id": client_id, "client_kind": kind, "error": str(exc)},
                exc_info=exc,
            )

    async def _retire(
        self, client_id: str, client: "Client", task: asyncio.Task[Any] | None
    ) -> None:
        try:
            await client.stop()
        except Exception as exc:
            ERRORS.labels("client", type(exc).__name__).inc()
            self.logger.error(
                "client_stop_failed",
                extra={"client_id": client_id, "error": str(exc)},
                exc_info=exc,
            )
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def remove_client(self, client_id: str) -> bool:
        """Stop and unregister a client; stop failures are logged."""

        client = self._clients.pop(client_id, None)
        task = self._listen_tasks.pop(client_id, None)
        if client is None:
            self.logger.debug("client_not_registered", extra={"client_id": client_id})
            return False
        await self._retire(client_id, client, task)
        self.logger.info("client_removed", extra={"client_id": client_id})
        return True

    async def shutdown(self) -> None:
        for client_id in list(self._clients):
            await self.remove_client(client_id)
        if self._retiring:
            await asyncio.gather(*list(self._retiring), return_exceptions=True)

    # ------------------------------------------------------------------
    # subscriptions
    def on(self, kind: str | EventKind, handler: Handler) -> None:
        """Subscribe ``handler`` to inbound events of ``kind``."""
        self._handlers.setdefault(_kind_key(kind), set()).add(handler)

    def off(self, kind: str | EventKind, handler: Handler) -> None:
        key = _kind_key(kind)
        handlers = self._handlers.get(key)
        if not handlers:
            return
        handlers.discard(handler)
        if not handlers:
            del self._handlers[key]

    def register_intent_action(self, action: str, handler: IntentActionHandler) -> None:
        """Register the core-local side effect run for intents naming ``action``."""
        self._intent_actions[action] = handler

    # ------------------------------------------------------------------
    def ensure_room(self, event: InboundEvent) -> Room:
        """Return the room owning ``event``, creating it on first sight.

        Lookup and creation run without yielding to the loop, so concurrent
        emits for the same unseen platform id cannot create two rooms.
        """

        ctx = resolve_room_context(event)
        room = self.room_manager.get_room_by_platform_id(ctx.platform_id, ctx.platform)
        if room is None:
            room = self.room_manager.create_room(
                ctx.platform_id,
                ctx.platform,
                {"name": ctx.name, "participants": ctx.participants},
            )
        else:
            room.touch(ctx.participants)
        return room

    async def emit(self, event: InboundEvent) -> ProcessingResult:
        """Run ``event`` through the full inbound path."""

        EVENTS_TOTAL.labels("inbound", event.kind).inc()
        self.logger.debug(
            "event_received",
            extra={"event_type": event.kind, "id": event.id, "source": event.source},
        )

        room = self.ensure_room(event)
        await self.room_manager.add_memory(
            room.id,
            event.content,
            {
                **event.metadata,
                "event_id": event.id,
                "kind": event.kind,
                "source": event.source,
            },
        )

        try:
            result = await self.processor.process(event, room)
        except Exception as exc:
            ERRORS.labels("dispatcher", type(exc).__name__).inc()
            self.logger.exception("pipeline_failed", extra={"id": event.id})
            result = ProcessingResult.degraded(event)

        await self._run_intent_actions(result.intents, event, room)

        for outbound in result.suggested_actions:
            await self.route_event(outbound)

        enriched = event.with_metadata(
            room_id=room.id, **result.enriched_context.as_metadata()
        )
        await self._notify(enriched)
        return result

    async def _run_intent_actions(
        self, intents: Iterable["Intent"], event: InboundEvent, room: Room
    ) -> None:
        for intent in intents:
            if not intent.action:
                continue
            handler = self._intent_actions.get(intent.action)
            if handler is None:
                self.logger.debug(
                    "intent_action_unhandled",
                    extra={"intent": intent.kind, "action": intent.action},
                )
                continue
            try:
                await handler(intent, event, room)
            except Exception as exc:
                ERRORS.labels("intent_action", type(exc).__name__).inc()
                self.logger.warning(
                    "intent_action_failed",
                    extra={"intent": intent.kind, "action": intent.action, "error": str(exc)},
                    exc_info=exc,
                )

    async def route_event(self, event: OutboundEvent) -> bool:
        """Deliver ``event`` to its target client; unknown targets are dropped."""

        client = self._clients.get(event.target)
        if client is None:
            ROUTING_DROPS.labels(event.target).inc()
            self.logger.warning(
                "target_client_not_found",
                extra={"target": event.target, "event_type": event.kind, "id": event.id},
            )
            return False
        try:
            await client.emit(event)
        except Exception as exc:
            ERRORS.labels("client", type(exc).__name__).inc()
            self.logger.error(
                "delivery_failed",
                extra={"target": event.target, "id": event.id, "error": str(exc)},
                exc_info=exc,
            )
            return False
        EVENTS_TOTAL.labels("outbound", event.kind).inc()
        self.logger.debug(
            "event_routed",
            extra={"target": event.target, "event_type": event.kind, "id": event.id},
        )
        return True

    async def _notify(self, event: InboundEvent) -> None:
        handlers = list(self._handlers.get(event.kind, ()))
        if not handlers:
            return
        results = await asyncio.gather(
            *(handler(event) for handler in handlers), return_exceptions=True
        )
        for handler, outcome in zip(handlers, results):
            if isinstance(outcome, BaseException):
                self._record_failure(handler=handler, event=event, exc=outcome)

    def _record_failure(self, *, handler: Handler, event: Event, exc: BaseException) -> None:
        handler_name = getattr(handler, "__qualname__", None) or getattr(
            handler, "__name__", str(handler)
        )
        payload: Dict[str, Any] = {}
        for key, value in event.__dict__.items():
            if isinstance(value, str) and len(value) > 1000:
                payload[key] = value[:1000] + "..."
            elif isinstance(value, Mapping):
                payload[key] = dict(value)
            else:
                payload[key] = value
        ERRORS.labels("handler", type(exc).__name__).inc()
        DLQ_LOGGER.error(
            "handler_failed",
            extra={
                "id": event.id,
                "event_type": event.kind,
                "handler": handler_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "payload": payload,
            },
        )


__all__ = ["Dispatcher", "Handler", "IntentActionHandler"]
