"""Tests for the assistant boundary and prompt building."""

from uuid import uuid4

import pytest

from app.schemas.ai import Intent
from app.services.ai_context_service import DEFAULT_RESTRICTED_TOPICS, AIContextService
from app.services.assistant_service import (
    CLASSIFICATION_FALLBACK_REPLY,
    DEFAULT_REPLIES,
    SafeAssistant,
    without_current,
)
from tests.fixtures.messaging_fixtures import FakeAssistant


@pytest.mark.asyncio
async def test_safe_assistant_passes_results_through():
    assistant = SafeAssistant(FakeAssistant(intent=Intent.GREETING, confidence=0.95))

    result = await assistant.classify_intent("hi", uuid4(), [])

    assert result.intention == Intent.GREETING
    assert result.confidence == 0.95
    assert await assistant.generate_reply("hi", Intent.GREETING, uuid4(), []) == "Happy to help!"


@pytest.mark.asyncio
async def test_safe_assistant_falls_back_on_failure():
    fake = FakeAssistant()
    fake.fail_classify = True
    fake.fail_reply = True
    assistant = SafeAssistant(fake)

    result = await assistant.classify_intent("hi", uuid4(), [])

    assert result.intention == Intent.UNKNOWN
    assert result.confidence == 0.0
    assert result.suggested_response == CLASSIFICATION_FALLBACK_REPLY
    reply = await assistant.generate_reply("hi", Intent.COMPLAINT, uuid4(), [])
    assert reply == DEFAULT_REPLIES[Intent.COMPLAINT]


@pytest.mark.asyncio
async def test_blank_reply_uses_default():
    assistant = SafeAssistant(FakeAssistant(reply="   "))

    reply = await assistant.generate_reply("hi", Intent.CLOSURE, uuid4(), [])

    assert reply == DEFAULT_REPLIES[Intent.CLOSURE]


def test_profile_merges_business_and_ai_context(db, setup_bot, setup_ai_context):
    profile = AIContextService(db).get_profile(setup_bot.id)

    assert profile.business_type == "salon"
    assert profile.allowed_topics == ["haircuts", "pricing"]
    assert profile.restricted_topics == DEFAULT_RESTRICTED_TOPICS
    assert profile.response_style == "friendly"


def test_profile_for_unknown_bot(db):
    assert AIContextService(db).get_profile(uuid4()) is None


def test_reply_prompt_mentions_context_and_limits(db, setup_bot, setup_ai_context):
    service = AIContextService(db)
    profile = service.get_profile(setup_bot.id)

    prompt = service.build_reply_prompt(profile, Intent.QUESTION)

    assert "neighbourhood salon" in prompt
    assert "- haircuts" in prompt
    assert "- politics" in prompt
    assert "under 300 characters" in prompt
    assert prompt.rstrip().endswith("characters.")


def test_custom_system_prompt_replaces_generated_one(db, setup_bot, setup_ai_context):
    setup_ai_context.system_prompt = "You are Mira, the salon concierge."
    db.commit()
    service = AIContextService(db)

    prompt = service.build_reply_prompt(service.get_profile(setup_bot.id), Intent.GREETING)

    assert prompt.startswith("You are Mira, the salon concierge.")
    assert "Business Context" not in prompt


def test_intent_prompt_lists_every_intent(db, setup_bot):
    service = AIContextService(db)

    prompt = service.build_intent_prompt(service.get_profile(setup_bot.id))

    for intent in Intent:
        assert f"- {intent.value}:" in prompt
    assert "OFF_TOPIC" in prompt


def test_without_current_drops_only_the_trailing_duplicate():
    history = [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "prices?"},
    ]

    assert without_current(history, "prices?") == history[:2]
    assert without_current(history, "hi") == history
    assert without_current([], "hi") == []
