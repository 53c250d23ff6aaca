"""Client contract and a polling base implementation."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from events.models import EventSink, InboundEvent, OutboundEvent
from metrics import ERRORS
from tasks.scheduler import TaskScheduler


@runtime_checkable
class Client(Protocol):
    """Adapter between the dispatcher and one external platform."""

    id: str
    kind: str

    async def listen(self) -> None:
        """Begin acquiring inbound events and forwarding them to the dispatcher."""

    async def stop(self) -> None:
        """Halt acquisition; an emit already in progress is not interrupted."""

    async def emit(self, event: OutboundEvent) -> None:
        """Best-effort delivery of ``event`` to the external platform."""


class BaseClient:
    """Polling client driven by :class:`~tasks.scheduler.TaskScheduler`.

    Subclasses implement :meth:`poll` and :meth:`deliver`. Events returned by
    one poll are forwarded to the dispatcher in order.
    """

    def __init__(
        self,
        client_id: str,
        kind: str,
        dispatcher: EventSink,
        *,
        poll_interval: float = 60.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.id = client_id
        self.kind = kind
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)
        self._scheduler: TaskScheduler | None = None

    @property
    def is_listening(self) -> bool:
        return self._scheduler is not None

    async def poll(self) -> Iterable[InboundEvent]:
        raise NotImplementedError

    async def deliver(self, event: OutboundEvent) -> None:
        raise NotImplementedError

    async def listen(self) -> None:
        if self._scheduler is not None:
            return
        scheduler = TaskScheduler(f"client-{self.id}")
        scheduler.add_periodic(self._poll_once, self.poll_interval)
        scheduler.start()
        self._scheduler = scheduler
        self.logger.info(
            "client_listening",
            extra={"client_id": self.id, "poll_interval": self.poll_interval},
        )

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        scheduler, self._scheduler = self._scheduler, None
        await scheduler.stop()
        self.logger.info("client_stopped", extra={"client_id": self.id})

    async def _poll_once(self) -> None:
        try:
            events = list(await self.poll())
        except Exception as exc:
            ERRORS.labels("client", type(exc).__name__).inc()
            self.logger.error(
                "poll_failed", extra={"client_id": self.id, "error": str(exc)}
            )
            return
        for event in events:
            try:
                await self.dispatcher.emit(event)
            except Exception as exc:
                ERRORS.labels("client", type(exc).__name__).inc()
                self.logger.exception(
                    "emit_failed", extra={"client_id": self.id, "id": event.id}
                )

    async def emit(self, event: OutboundEvent) -> None:
        if event.target != self.id:
            self.logger.debug(
                "event_not_for_client",
                extra={"client_id": self.id, "target": event.target, "id": event.id},
            )
            return
        await self.deliver(event)


__all__ = ["BaseClient", "Client"]
