"""Tests for InboundMessageCommand."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.adapters.web import WebAdapter
from app.adapters.whatsapp import WhatsAppAdapter
from app.commands.webhooks.inbound_message_command import (
    InboundMessageCommand,
    inbound_from_web,
)
from app.core.app_state import AppState
from app.exceptions import BotNotFoundError, ChannelUnavailableError
from app.models.conversation_event import ConversationEvent
from app.schemas.messaging import Channel
from tests.fixtures.messaging_fixtures import FakeWhatsAppTransport


def _fake_router():
    router = MagicMock()
    router.dispatch = AsyncMock()
    return router


@pytest.fixture
def state():
    return AppState(router=_fake_router(), redis_client=None)


def _whatsapp_inbound(bot_id, text="hi"):
    return inbound_from_web(bot_id, "919800000001", text).model_copy(
        update={"channel": Channel.WHATSAPP}
    )


@pytest.mark.asyncio
async def test_web_message_is_recorded_and_dispatched(db, state, setup_web_bot):
    command = InboundMessageCommand(db, state)

    result = await command.execute(
        inbound_from_web(setup_web_bot.id, "session-9", "hello")
    )

    assert result.accepted
    _, adapter, text = state.router.dispatch.await_args.args
    assert isinstance(adapter, WebAdapter)
    assert adapter.user_key == "session-9"
    assert text == "hello"
    assert db.query(ConversationEvent).one().direction == "inbound"


@pytest.mark.asyncio
async def test_whatsapp_adapter_uses_registered_transport(db, state, setup_bot):
    transport = FakeWhatsAppTransport()
    state.connections.register(Channel.WHATSAPP, setup_bot.id, transport)
    command = InboundMessageCommand(db, state)

    adapter = command.build_adapter(setup_bot, _whatsapp_inbound(setup_bot.id))

    assert isinstance(adapter, WhatsAppAdapter)
    await adapter.send_text("pong")
    assert transport.sent == [("919800000001@s.whatsapp.net", {"text": "pong"})]


@pytest.mark.asyncio
async def test_missing_transport(db, state, setup_bot):
    with pytest.raises(ChannelUnavailableError):
        await InboundMessageCommand(db, state).execute(
            _whatsapp_inbound(setup_bot.id)
        )
    state.router.dispatch.assert_not_awaited()


@pytest.mark.asyncio
async def test_channel_mismatch_is_not_found(db, state, setup_bot):
    with pytest.raises(BotNotFoundError):
        await InboundMessageCommand(db, state).execute(
            inbound_from_web(setup_bot.id, "session-1", "hi")
        )


@pytest.mark.asyncio
async def test_rate_limited(db, setup_web_bot):
    redis_client = MagicMock()
    redis_client.pipeline.return_value.execute.return_value = [6, True]
    state = AppState(router=_fake_router(), redis_client=redis_client)
    state.rate_limiter.limit_per_minute = 5
    command = InboundMessageCommand(db, state)

    result = await command.execute(
        inbound_from_web(setup_web_bot.id, "session-1", "hi")
    )

    assert result.accepted is False
    assert result.detail == "rate_limited"
    state.router.dispatch.assert_not_awaited()
    assert db.query(ConversationEvent).count() == 0
