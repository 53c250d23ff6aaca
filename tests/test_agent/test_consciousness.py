import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from agent.consciousness import Consciousness
from events.models import InternalThought
from memory import RoomManager

THOUGHT = json.dumps(
    {
        "thought": "People keep asking about the release date.",
        "confidence": 0.8,
        "reasoning": "three questions in an hour",
        "context": {"relatedTopics": ["release"], "suggestedPlatforms": ["twitter"]},
    }
)


class SlowSink:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.finished = []

    async def emit(self, event):
        self.started.set()
        await self.release.wait()
        self.finished.append(event)


def _sink():
    sink = AsyncMock()
    sink.emit.return_value = None
    return sink


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_confident_thought_is_emitted(make_llm):
    sink = _sink()
    c = Consciousness(sink, make_llm(thought=[THOUGHT]), RoomManager())

    thought = await c.think()

    assert isinstance(thought, InternalThought)
    sink.emit.assert_awaited_once_with(thought)
    assert thought.source == "consciousness"
    assert thought.content == "People keep asking about the release date."
    assert thought.metadata["confidence"] == 0.8
    assert thought.metadata["reasoning"] == "three questions in an hour"
    assert thought.metadata["relatedTopics"] == ["release"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        json.dumps({"thought": "meh", "confidence": 0.5}),
        "no structure here",
        json.dumps({"confidence": 0.9}),
        '{"thought": "t", "confidence": NaN}',
        '{"thought": "t", "confidence": Infinity}',
        json.dumps({"thought": "t", "confidence": 7}),
        RuntimeError("llm down"),
    ],
)
async def test_unusable_thoughts_are_skipped(make_llm, response):
    sink = _sink()
    c = Consciousness(sink, make_llm(thought=[response]), RoomManager())

    assert await c.think() is None
    sink.emit.assert_not_awaited()


@pytest.mark.asyncio
async def test_prompt_samples_recent_memories(make_llm):
    manager = RoomManager()
    room = manager.create_room("t1", "twitter")
    for i in range(8):
        await manager.add_memory(room.id, f"note {i}")
    llm = make_llm(thought=[json.dumps({"thought": "x", "confidence": 0.1})])
    c = Consciousness(_sink(), llm, manager, per_room=3, memory_limit=2)

    await c.think()

    prompt, _ = llm.calls_for("thought")[0]
    sampled = [line for line in prompt.splitlines() if line.startswith("- note")]
    assert len(sampled) == 2
    assert set(sampled) <= {"- note 5", "- note 6", "- note 7"}


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_before_start_is_noop(make_llm):
    c = Consciousness(_sink(), make_llm(thought=[THOUGHT]), RoomManager())

    await c.stop()
    assert not c.is_running

    c.start(60)
    scheduler = c._scheduler
    c.start(60)
    assert c._scheduler is scheduler
    assert len(scheduler._tasks) == 1
    assert c.is_running

    await c.stop()
    await c.stop()
    assert not c.is_running


@pytest.mark.asyncio
async def test_failing_ticks_do_not_stop_the_timer(make_llm):
    llm = make_llm(thought=[RuntimeError("flaky")])
    c = Consciousness(_sink(), llm, RoomManager())

    c.start(0.01)
    await _wait_for(lambda: llm.count("thought") >= 3)
    await c.stop()

    calls = llm.count("thought")
    await asyncio.sleep(0.03)
    assert llm.count("thought") == calls


@pytest.mark.asyncio
async def test_stop_lets_inflight_emit_finish(make_llm):
    sink = SlowSink()
    c = Consciousness(sink, make_llm(thought=[THOUGHT]), RoomManager())

    c.start(0.01)
    await asyncio.wait_for(sink.started.wait(), timeout=1.0)
    stopping = asyncio.create_task(c.stop())
    await asyncio.sleep(0.02)
    assert not stopping.done()

    sink.release.set()
    await asyncio.wait_for(stopping, timeout=1.0)
    assert len(sink.finished) == 1


def test_non_positive_interval_rejected(make_llm):
    c = Consciousness(_sink(), make_llm(), RoomManager())
    with pytest.raises(ValueError):
        c.start(0)
