"""Tests for request orchestration: cache, limits, conversations, tracking"""

import json

import pytest

from fakes import FakeProviderError, make_response
from pitchintel.analysis.personas import PERSONAS
from pitchintel.llm.errors import (
    DailyLimitExceededError,
    InputTooLargeError,
    PermanentProviderError,
    UnknownConversationError,
)


@pytest.mark.asyncio
async def test_repeated_slide_analysis_is_served_from_cache(service, completion):
    first = await service.analyze_slides([{"role": "user", "content": "Hello "}])
    second = await service.analyze_slides([{"role": "user", "content": "Hello"}])

    assert first["tokensUsed"] == 150
    assert "cached" not in first
    assert second == {"content": "ok", "tokensUsed": 0, "cost": 0.0, "cached": True}

    assert len(completion.calls) == 1
    # Cache hits are not billed
    assert service.tracker.get_todays_usage()["requests"] == 1
    assert service.cache.get_stats()["totalHits"] == 1


@pytest.mark.asyncio
async def test_usage_is_tracked_per_endpoint(service):
    await service.analyze_slides([{"role": "user", "content": "slide one"}])
    await service.chat([{"role": "user", "content": "hi"}])

    breakdown = service.tracker.get_stats().endpoint_breakdown
    assert breakdown["analyze-slides"].tokens == 150
    assert breakdown["chat"].requests == 1


@pytest.mark.asyncio
async def test_chat_creates_conversation_with_persona_prompt(service, completion):
    response = await service.chat([{"role": "user", "content": "We grew 20% MoM"}], persona="skeptic")

    conv_id = response["conversationId"]
    assert conv_id
    assert response["content"] == "ok"

    sent = completion.calls[0]["messages"]
    assert sent == [
        {"role": "system", "content": PERSONAS["skeptic"].system_prompt},
        {"role": "user", "content": "We grew 20% MoM"},
    ]
    assert completion.calls[0]["temperature"] == 0.8

    history = await service.memory.get_formatted_messages(conv_id)
    assert [m["role"] for m in history] == ["system", "user", "assistant"]


@pytest.mark.asyncio
async def test_explicit_system_prompt_wins_over_persona(service, completion):
    await service.chat(
        [{"role": "user", "content": "Hi"}],
        system_prompt="Custom investor",
        persona="operator",
    )

    assert completion.calls[0]["messages"][0] == {"role": "system", "content": "Custom investor"}


@pytest.mark.asyncio
async def test_chat_continues_existing_conversation(service, completion):
    completion.outcomes = [make_response("first reply"), make_response("second reply")]
    first = await service.chat([{"role": "user", "content": "Question one"}])
    conv_id = first["conversationId"]

    second = await service.chat(
        [{"role": "user", "content": "Question two"}],
        conversation_id=conv_id,
    )

    assert second["conversationId"] == conv_id
    assert second["content"] == "second reply"
    assert completion.calls[1]["messages"] == [
        {"role": "user", "content": "Question one"},
        {"role": "assistant", "content": "first reply"},
        {"role": "user", "content": "Question two"},
    ]


@pytest.mark.asyncio
async def test_chat_only_appends_trailing_user_message(service, completion):
    response = await service.chat([
        {"role": "user", "content": "old"},
        {"role": "assistant", "content": "older reply"},
        {"role": "user", "content": "latest"},
    ])

    history = await service.memory.get_formatted_messages(response["conversationId"])
    assert history == [
        {"role": "user", "content": "latest"},
        {"role": "assistant", "content": "ok"},
    ]


@pytest.mark.asyncio
async def test_failed_turn_is_not_stored_and_can_be_resent(service, completion):
    first = await service.chat([{"role": "user", "content": "q1"}])
    conv_id = first["conversationId"]

    completion.outcomes = [FakeProviderError(400)]
    with pytest.raises(PermanentProviderError):
        await service.chat([{"role": "user", "content": "q2"}], conversation_id=conv_id)

    history = await service.memory.get_formatted_messages(conv_id)
    assert [m["content"] for m in history] == ["q1", "ok"]
    assert service.memory.get(conv_id).total_tokens == sum(
        m.tokens for m in service.memory.get(conv_id).messages
    )

    await service.chat([{"role": "user", "content": "q2"}], conversation_id=conv_id)

    history = await service.memory.get_formatted_messages(conv_id)
    assert [m["content"] for m in history] == ["q1", "ok", "q2", "ok"]
    assert completion.calls[-1]["messages"] == [
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "ok"},
        {"role": "user", "content": "q2"},
    ]


@pytest.mark.asyncio
async def test_failed_first_turn_discards_new_conversation(service, completion):
    completion.outcomes = [FakeProviderError(401)]

    with pytest.raises(PermanentProviderError):
        await service.chat([{"role": "user", "content": "hello"}], persona="skeptic")

    assert service.conversation_stats()["activeConversations"] == 0


@pytest.mark.asyncio
async def test_oversized_chat_turn_leaves_conversation_untouched(service, completion):
    conv_id = (await service.chat([{"role": "user", "content": "hi"}]))["conversationId"]

    with pytest.raises(InputTooLargeError):
        await service.chat([{"role": "user", "content": "x" * 400_000}], conversation_id=conv_id)

    history = await service.memory.get_formatted_messages(conv_id)
    assert [m["content"] for m in history] == ["hi", "ok"]


@pytest.mark.asyncio
async def test_chat_cache_hit_still_records_reply(service, completion):
    prompt = [{"role": "user", "content": "Why now?"}]
    first = await service.chat(prompt, persona="numbers_hawk")
    second = await service.chat(prompt, persona="numbers_hawk")

    assert first["conversationId"] != second["conversationId"]
    assert second["cached"] is True
    assert second["tokensUsed"] == 0
    assert len(completion.calls) == 1

    history = await service.memory.get_formatted_messages(second["conversationId"])
    assert history[-1] == {"role": "assistant", "content": "ok"}


@pytest.mark.asyncio
async def test_different_personas_do_not_share_cache(service, completion):
    prompt = [{"role": "user", "content": "Why now?"}]
    await service.chat(prompt, persona="skeptic")
    response = await service.chat(prompt, persona="operator")

    assert "cached" not in response
    assert len(completion.calls) == 2


@pytest.mark.asyncio
async def test_unknown_conversation_is_rejected(service, completion):
    with pytest.raises(UnknownConversationError) as exc_info:
        await service.chat([{"role": "user", "content": "Hi"}], conversation_id="does-not-exist")

    assert exc_info.value.status_code == 400
    assert exc_info.value.to_dict()["error"] == "Invalid conversation ID"
    assert completion.calls == []


@pytest.mark.asyncio
async def test_daily_cost_limit_blocks_new_work(service, completion):
    service.tracker.track("chat", 1000, 50.0)

    with pytest.raises(DailyLimitExceededError) as exc_info:
        await service.analyze_slides([{"role": "user", "content": "slide"}])

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Daily cost limit exceeded"
    assert completion.calls == []


@pytest.mark.asyncio
async def test_daily_token_limit_blocks_chat(service, completion):
    service.tracker.track("chat", 10_000_000, 0.0)

    with pytest.raises(DailyLimitExceededError) as exc_info:
        await service.chat([{"role": "user", "content": "hi"}])

    assert exc_info.value.message == "Daily token limit exceeded"
    assert completion.calls == []


@pytest.mark.asyncio
async def test_oversized_input_is_not_tracked_or_cached(service, completion):
    huge = [{"role": "user", "content": "x" * 400_000}]

    with pytest.raises(InputTooLargeError):
        await service.analyze_slides(huge)

    assert completion.calls == []
    assert service.tracker.get_todays_usage()["requests"] == 0
    assert service.cache.size() == 0


@pytest.mark.asyncio
async def test_provider_failure_is_not_cached(service, completion):
    completion.outcomes = [FakeProviderError(401)]

    with pytest.raises(PermanentProviderError):
        await service.analyze_slides([{"role": "user", "content": "slide"}])

    assert service.cache.size() == 0
    assert service.tracker.get_todays_usage()["requests"] == 0


@pytest.mark.asyncio
async def test_usage_stats_shape(service):
    await service.analyze_slides([{"role": "user", "content": "slide"}])

    stats = service.usage_stats()
    assert set(stats) == {"usage", "cache", "limits", "todaysUsage"}
    assert stats["usage"]["requestCount"] == 1
    assert stats["cache"]["size"] == 1
    assert stats["limits"]["dailyCostLimit"] == 50.0
    assert stats["limits"]["costExceeded"] is False
    assert stats["todaysUsage"]["tokens"] == 150


@pytest.mark.asyncio
async def test_conversation_management(service):
    response = await service.chat([{"role": "user", "content": "hi"}])
    conv_id = response["conversationId"]

    assert service.conversation_stats()["activeConversations"] == 1
    assert await service.delete_conversation(conv_id) == {"success": True}
    assert await service.delete_conversation(conv_id) == {"success": False}

    await service.chat([{"role": "user", "content": "again"}])
    assert await service.clear_conversations() == {"success": True}
    assert service.conversation_stats()["activeConversations"] == 0


@pytest.mark.asyncio
async def test_clear_cache(service, completion):
    messages = [{"role": "user", "content": "slide"}]
    await service.analyze_slides(messages)

    assert service.clear_cache()["success"] is True
    response = await service.analyze_slides(messages)

    assert "cached" not in response
    assert len(completion.calls) == 2


@pytest.mark.asyncio
async def test_score_answer_through_service(service, completion):
    completion.default = make_response(json.dumps({
        "score": 85,
        "explanation": "Clear and specific",
        "improvement": "Add a customer quote",
        "label": "green",
    }))

    result = await service.score_answer("What is your CAC?", "$40, payback in 3 months")

    assert result["score"] == 85
    assert result["label"] == "green"
    assert service.tracker.get_stats().endpoint_breakdown["score-answer"].requests == 1
