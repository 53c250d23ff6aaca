import json
import logging

import pytest

from agent.intent import Intent, LLMIntentExtractor


@pytest.mark.asyncio
async def test_intents_are_validated_and_sorted(make_llm):
    llm = make_llm(
        intent=[
            json.dumps(
                {
                    "intents": [
                        {"type": "question", "confidence": 0.4},
                        {"kind": "request", "confidence": "0.8", "action": "lookup", "parameters": {"q": "x"}},
                        {"type": "shout", "confidence": 7},
                        {"confidence": 0.9},
                        "not a dict",
                    ]
                }
            )
        ]
    )

    intents = await LLMIntentExtractor(llm).extract("where is it?")

    assert intents == [
        Intent("shout", 1.0),
        Intent("request", 0.8, action="lookup", parameters={"q": "x"}),
        Intent("question", 0.4),
    ]


@pytest.mark.asyncio
async def test_bare_list_and_blank_action(make_llm):
    llm = make_llm(intent=[json.dumps([{"type": "greet", "confidence": 0.6, "action": " ", "parameters": "x"}])])
    intents = await LLMIntentExtractor(llm).extract("hi")
    assert intents == [Intent("greet", 0.6)]


@pytest.mark.asyncio
async def test_unparseable_response_yields_no_intents(make_llm, caplog):
    llm = make_llm(intent=["I think the user is greeting"])
    caplog.set_level(logging.WARNING)

    assert await LLMIntentExtractor(llm).extract("hi") == []
    assert any(r.getMessage() == "intent_parse_failed" for r in caplog.records)


@pytest.mark.asyncio
async def test_prompt_override_and_options(make_llm):
    llm = make_llm(intent=[json.dumps({"intents": []})])
    extractor = LLMIntentExtractor(llm, temperature=0.1)

    await extractor.extract("ignored", prompt="Classify the purposes of this custom prompt")

    prompt, opts = llm.calls_for("intent")[0]
    assert prompt == "Classify the purposes of this custom prompt"
    assert opts.temperature == 0.1
    assert opts.structured_output


@pytest.mark.asyncio
async def test_collaborator_errors_propagate(make_llm):
    llm = make_llm(intent=[TimeoutError("slow")])
    with pytest.raises(TimeoutError):
        await LLMIntentExtractor(llm).extract("hi")
