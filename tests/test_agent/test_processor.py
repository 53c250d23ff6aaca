import json
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from actions import ActionCatalog
from agent import EventProcessor, LLMIntentExtractor
from agent.intent import Intent
from events.models import InboundEvent, TweetRequest
from memory import InMemorySimilarityIndex, RoomManager

GOOD_ENRICHMENT = json.dumps(
    {"summary": "short", "topics": ["ai", "events"], "sentiment": "neutral", "entities": [], "intent": "question"}
)


def _event(content: str = "what is new with the router?", **kwargs) -> InboundEvent:
    return InboundEvent(kind="console_message", source="console", content=content, **kwargs)


def _processor(llm, *, index=None, extractor=None, **kwargs) -> EventProcessor:
    return EventProcessor(
        index,
        extractor or LLMIntentExtractor(llm),
        llm,
        ActionCatalog(),
        **kwargs,
    )


def _room(manager: RoomManager | None = None):
    manager = manager or RoomManager()
    return manager.create_room("console", "console")


@pytest.mark.asyncio
async def test_enrichment_parsed_from_fenced_response(make_llm):
    llm = make_llm(enrichment=[f"```json\n{GOOD_ENRICHMENT}\n```"])
    result = await _processor(llm).process(_event(), _room())

    ctx = result.enriched_context
    assert ctx.summary == "short"
    assert ctx.topics == ["ai", "events"]
    assert ctx.intent == "question"
    assert ctx.time_context == "very_recent"
    assert llm.count("enrichment") == 1
    _, opts = llm.calls_for("enrichment")[0]
    assert opts.temperature == 0.3
    assert opts.structured_output


@pytest.mark.asyncio
async def test_malformed_enrichment_retries_exactly_once_then_degrades(make_llm, caplog):
    llm = make_llm(enrichment=["definitely not json"])
    caplog.set_level(logging.WARNING)
    content = "z" * 250

    result = await _processor(llm).process(_event(content), _room())

    assert llm.count("enrichment") == 2
    retry_prompt, retry_opts = llm.calls_for("enrichment")[1]
    assert "Respond with ONLY the JSON object" in retry_prompt
    assert retry_opts.temperature == 0.2
    ctx = result.enriched_context
    assert ctx.summary == "z" * 100
    assert ctx.topics == []
    assert ctx.entities == []
    assert ctx.sentiment == "neutral"
    assert ctx.intent == "unknown"
    assert any(r.getMessage() == "enrichment_failed" for r in caplog.records)


@pytest.mark.asyncio
async def test_retry_success_is_used(make_llm):
    llm = make_llm(enrichment=["oops", GOOD_ENRICHMENT])
    result = await _processor(llm).process(_event(), _room())
    assert llm.count("enrichment") == 2
    assert result.enriched_context.summary == "short"


@pytest.mark.asyncio
async def test_enrichment_missing_summary_counts_as_parse_failure(make_llm):
    llm = make_llm(enrichment=[json.dumps({"topics": ["x"]})])
    result = await _processor(llm).process(_event("abc"), _room())
    assert llm.count("enrichment") == 2
    assert result.enriched_context.summary == "abc"


@pytest.mark.asyncio
async def test_collaborator_exception_degrades_without_retry(make_llm):
    llm = make_llm(enrichment=[ConnectionError("llm offline")], intent=[ConnectionError("llm offline")])
    result = await _processor(llm).process(_event("hello"), _room())

    assert llm.count("enrichment") == 1
    assert result.intents == []
    assert result.suggested_actions == []
    assert result.enriched_context.summary == "hello"


@pytest.mark.asyncio
async def test_related_memories_exclude_own_content(make_llm):
    index = InMemorySimilarityIndex()
    manager = RoomManager(index)
    room = manager.create_room("console", "console")
    for text in ("router release date", "router bug triage", "router roadmap", "router faq"):
        await manager.add_memory(room.id, text)
    event = _event("router release notes")
    await manager.add_memory(room.id, event.content)

    llm = make_llm(enrichment=[GOOD_ENRICHMENT])
    result = await _processor(llm, index=index, related_limit=3).process(event, room)

    related = result.enriched_context.related_memories
    assert len(related) == 3
    assert "router release notes" not in related
    prompt, _ = llm.calls_for("enrichment")[0]
    for item in related:
        assert f"- {item}" in prompt


@pytest.mark.asyncio
async def test_no_room_scoped_index_means_no_related_memories(make_llm):
    llm = make_llm(enrichment=[GOOD_ENRICHMENT])
    result = await _processor(llm, index=None).process(_event(), _room())
    assert result.enriched_context.related_memories == []


@pytest.mark.asyncio
async def test_old_event_gets_older_bucket(make_llm):
    now = datetime(2024, 1, 31, tzinfo=timezone.utc)
    llm = make_llm(enrichment=[GOOD_ENRICHMENT])
    processor = _processor(llm, clock=lambda: now)
    event = _event(timestamp=now - timedelta(days=45))

    result = await processor.process(event, _room())

    assert result.enriched_context.time_context == "older"


def _suggestion(action: str = "tweet", confidence: float = 0.9, **params) -> str:
    return json.dumps(
        {
            "selectedAction": action,
            "confidence": confidence,
            "parameters": params or {"content": "shipping today"},
            "reasoning": "announce it",
        }
    )


def _extractor(*intents: Intent):
    extractor = AsyncMock()
    extractor.extract.return_value = list(intents)
    return extractor


@pytest.mark.asyncio
@pytest.mark.parametrize("confidence,expected", [(0.7, 1), (0.69, 0), (0.95, 1)])
async def test_action_confidence_threshold(make_llm, confidence, expected):
    llm = make_llm(enrichment=[GOOD_ENRICHMENT], action=[_suggestion(confidence=confidence)])
    processor = _processor(llm, extractor=_extractor(Intent("announce", 0.9)))

    result = await processor.process(_event(), _room())

    assert len(result.suggested_actions) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["NaN", "Infinity", "1.5", "-0.2"])
async def test_non_numeric_or_out_of_range_confidence_yields_no_action(make_llm, caplog, raw):
    response = '{"selectedAction": "tweet", "confidence": %s, "parameters": {"content": "hi"}}' % raw
    llm = make_llm(enrichment=[GOOD_ENRICHMENT], action=[response])
    processor = _processor(llm, extractor=_extractor(Intent("announce", 0.9)))

    caplog.set_level(logging.WARNING)
    result = await processor.process(_event(), _room())

    assert result.suggested_actions == []
    assert "action_invalid" in [r.getMessage() for r in caplog.records]


@pytest.mark.asyncio
async def test_accepted_action_becomes_descriptor_event(make_llm):
    llm = make_llm(
        enrichment=[GOOD_ENRICHMENT],
        action=[_suggestion(content="release 2.0 is out", replyTo="99")],
    )
    intent = Intent("announce", 0.9, parameters={"version": "2.0"})
    result = await _processor(llm, extractor=_extractor(intent)).process(_event(), _room())

    [event] = result.suggested_actions
    assert isinstance(event, TweetRequest)
    assert event.target == "twitter"
    assert event.content == "release 2.0 is out"
    assert event.reply_to == "99"
    assert event.metadata["intent"] == "announce"
    assert event.metadata["action"] == "tweet"
    assert event.metadata["confidence"] == 0.9
    assert event.metadata["originalParameters"] == {"version": "2.0"}

    prompt, _ = llm.calls_for("action")[0]
    assert "- tweet:" in prompt
    assert "- tweet_thought:" in prompt
    assert "Type: announce" in prompt


@pytest.mark.asyncio
async def test_bad_suggestions_do_not_abort_other_intents(make_llm, caplog):
    llm = make_llm(
        enrichment=[GOOD_ENRICHMENT],
        action=[
            "garbage",
            _suggestion(action="launch_rocket"),
            json.dumps({"selectedAction": "tweet", "confidence": 0.9, "parameters": {}}),
            ConnectionError("llm hiccup"),
            _suggestion(content="this one works"),
        ],
    )
    intents = [Intent(f"i{n}", 0.9) for n in range(5)]
    caplog.set_level(logging.DEBUG)

    result = await _processor(llm, extractor=_extractor(*intents)).process(_event(), _room())

    assert [e.content for e in result.suggested_actions] == ["this one works"]
    messages = {r.getMessage() for r in caplog.records}
    assert {"action_parse_failed", "unknown_action", "action_missing_parameters", "action_generation_failed"} <= messages


@pytest.mark.asyncio
async def test_no_intents_means_no_action_calls(make_llm):
    llm = make_llm(enrichment=[GOOD_ENRICHMENT], intent=[json.dumps({"intents": []})])
    result = await _processor(llm).process(_event(), _room())
    assert result.intents == []
    assert llm.count("action") == 0


@pytest.mark.asyncio
async def test_extractor_failure_yields_no_intents(make_llm):
    extractor = AsyncMock()
    extractor.extract.side_effect = RuntimeError("classifier down")
    llm = make_llm(enrichment=[GOOD_ENRICHMENT])
    result = await _processor(llm, extractor=extractor).process(_event(), _room())
    assert result.intents == []
    assert result.enriched_context.summary == "short"


def test_enriched_context_metadata_keys():
    from agent.processor import EnrichedContext

    ctx = EnrichedContext.minimal("hello", "recent", ["a"])
    assert ctx.as_metadata() == {
        "time_context": "recent",
        "summary": "hello",
        "topics": [],
        "related_memories": ["a"],
        "sentiment": "neutral",
        "entities": [],
        "intent": "unknown",
    }
