"""Tests for the extraction engine (local rules first, then the model)."""

import pytest

from aiva.agents.extractor import NOTHING_FOUND, STRICT_RETRY_NOTE
from aiva.utils.errors import ModelAPIError, user_message
from conftest import NOW, delimited


@pytest.mark.asyncio
async def test_local_rules_skip_the_model(engine, bedrock):
    result = await engine.extract_text("email is jane@example.com, policy ABC-123", now=NOW)

    assert result.candidate == {"email": "jane@example.com", "policyNo": "ABC-123"}
    assert result.source == "text:rules"
    assert bedrock.calls == []


@pytest.mark.asyncio
async def test_model_fallback_cleans_the_candidate(engine, bedrock):
    bedrock.queue(delimited(
        '{"incidentLocation": "Narita Airport", "incidentDateTime": "2025-09-12T14:30",'
        ' "claimTypes": ["Baggage Loss"], "passportCopy": "x.pdf", "mood": "sad", "airline": ""}'
    ))

    result = await engine.extract_text("Someone took my bag at the airport in Tokyo", now=NOW)

    assert result.candidate == {
        "incidentLocation": "Narita Airport",
        "incidentDateTime": "2025-09-12 14:30",
        "claimTypes": "Baggage Loss",
    }
    assert result.source == "text:model"
    assert len(bedrock.calls) == 1
    assert "Someone took my bag" in bedrock.prompt_text()


@pytest.mark.asyncio
async def test_unparseable_reply_is_retried_strictly(engine, bedrock):
    bedrock.queue("Sure! The location is Tokyo.", delimited('{"incidentLocation": "Tokyo"}'))

    result = await engine.extract_text("It was somewhere in Tokyo really", now=NOW)

    assert result.candidate == {"incidentLocation": "Tokyo"}
    assert len(bedrock.calls) == 2
    assert STRICT_RETRY_NOTE not in bedrock.prompt_text(0)
    assert STRICT_RETRY_NOTE in bedrock.prompt_text(1)


@pytest.mark.asyncio
async def test_two_unparseable_replies_give_nothing(engine, bedrock):
    bedrock.queue("no idea", "still no idea")

    result = await engine.extract_text("hmm okay", now=NOW)

    assert result.is_empty
    assert result.reason == NOTHING_FOUND
    assert not result.failed
    assert len(bedrock.calls) == 2


@pytest.mark.asyncio
async def test_empty_object_is_nothing_found(engine, bedrock):
    bedrock.queue(delimited("{}"))

    result = await engine.extract_text("ok thanks", now=NOW)

    assert result.is_empty
    assert not result.failed
    assert len(bedrock.calls) == 1


@pytest.mark.asyncio
async def test_model_timeout_becomes_a_failure(engine, bedrock):
    error = ModelAPIError.timeout("extract_fields", 30.0)
    bedrock.queue(error)

    result = await engine.extract_text("something vague", now=NOW)

    assert result.is_empty
    assert result.failed
    assert result.reason == user_message(error)


@pytest.mark.asyncio
async def test_blank_text_makes_no_call(engine, bedrock):
    result = await engine.extract_text("   ", now=NOW)

    assert result.is_empty
    assert bedrock.calls == []


def test_prompt_lists_scalar_keys_only(engine):
    prompt = engine.build_prompt()

    assert '"fullName"' in prompt
    assert '"passportCopy"' not in prompt
    assert "Travel Delay" in prompt
