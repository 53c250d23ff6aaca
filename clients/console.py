"""Interactive client reading stdin lines and printing outbound events."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, List

from events.models import EventKind, EventSink, InboundEvent, OutboundEvent

from .base import BaseClient


def _read_stdin() -> str:
    return sys.stdin.readline()


def _write_stdout(text: str) -> None:
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


class ConsoleClient(BaseClient):
    """Turns each non-empty stdin line into a ``console_message`` event.

    The blocking read runs in a worker thread so the loop keeps serving other
    clients; a read already waiting finishes on the next line or EOF.
    """

    def __init__(
        self,
        dispatcher: EventSink,
        *,
        client_id: str = "console",
        username: str = "operator",
        poll_interval: float = 0.1,
        reader: Callable[[], str] = _read_stdin,
        writer: Callable[[str], None] = _write_stdout,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(
            client_id,
            "console",
            dispatcher,
            poll_interval=poll_interval,
            logger=logger or logging.getLogger(__name__),
        )
        self.username = username
        self._reader = reader
        self._writer = writer
        self.eof = False

    async def poll(self) -> List[InboundEvent]:
        if self.eof:
            return []
        line = await asyncio.to_thread(self._reader)
        if line == "":
            self.eof = True
            self.logger.info("console_eof", extra={"client_id": self.id})
            return []
        text = line.strip()
        if not text:
            return []
        return [
            InboundEvent(
                kind=EventKind.CONSOLE_MESSAGE.value,
                source=self.id,
                content=text,
                metadata={"username": self.username},
            )
        ]

    async def deliver(self, event: OutboundEvent) -> None:
        self._writer(f"[{event.kind}] {event.content}")


__all__ = ["ConsoleClient"]
