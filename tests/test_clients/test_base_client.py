import asyncio
import logging
from typing import List

import pytest

from clients import BaseClient, Client
from events.models import InboundEvent, OutboundEvent


class Sink:
    def __init__(self, fail_on: str | None = None) -> None:
        self.received: List[InboundEvent] = []
        self.fail_on = fail_on

    async def emit(self, event: InboundEvent) -> None:
        if event.content == self.fail_on:
            raise RuntimeError("dispatcher exploded")
        self.received.append(event)


class ScriptedClient(BaseClient):
    def __init__(self, sink, batches, **kwargs) -> None:
        super().__init__("feed", "feed", sink, poll_interval=0.01, **kwargs)
        self.batches = list(batches)
        self.delivered: List[OutboundEvent] = []

    async def poll(self):
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return [InboundEvent(kind="feed_item", source=self.id, content=c) for c in batch]

    async def deliver(self, event: OutboundEvent) -> None:
        self.delivered.append(event)


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_polled_events_forwarded_in_order():
    sink = Sink()
    client = ScriptedClient(sink, [["a", "b"], ["c"]])
    assert isinstance(client, Client)

    await client.listen()
    await _wait_for(lambda: len(sink.received) == 3)
    await client.stop()

    assert [e.content for e in sink.received] == ["a", "b", "c"]
    assert all(e.source == "feed" for e in sink.received)


@pytest.mark.asyncio
async def test_poll_and_emit_failures_do_not_stop_listening(caplog):
    sink = Sink(fail_on="bad")
    client = ScriptedClient(sink, [RuntimeError("api down"), ["bad", "good"], ["later"]])

    caplog.set_level(logging.ERROR, logger="clients.base")
    await client.listen()
    await _wait_for(lambda: len(sink.received) == 2)
    await client.stop()

    assert [e.content for e in sink.received] == ["good", "later"]
    messages = [r.getMessage() for r in caplog.records]
    assert "poll_failed" in messages
    assert "emit_failed" in messages


@pytest.mark.asyncio
async def test_listen_is_idempotent_and_stop_halts_polling():
    sink = Sink()
    client = ScriptedClient(sink, [])

    await client.listen()
    scheduler = client._scheduler
    await client.listen()
    assert client._scheduler is scheduler
    assert client.is_listening

    await client.stop()
    await client.stop()
    assert not client.is_listening
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_emit_only_delivers_events_addressed_to_client():
    client = ScriptedClient(Sink(), [])

    mine = OutboundEvent(kind="post", target="feed", content="hi")
    other = OutboundEvent(kind="post", target="elsewhere", content="nope")
    await client.emit(mine)
    await client.emit(other)

    assert client.delivered == [mine]


@pytest.mark.asyncio
async def test_base_hooks_must_be_overridden():
    client = BaseClient("raw", "raw", Sink())
    with pytest.raises(NotImplementedError):
        await client.poll()
    with pytest.raises(NotImplementedError):
        await client.emit(OutboundEvent(kind="x", target="raw"))
