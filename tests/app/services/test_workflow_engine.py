"""Tests for the workflow engine."""

import pytest

from app.models.conversation_session import ConversationSession
from app.models.inquiry import Inquiry
from app.schemas.booking import BookingState, FlowKind, SessionOutcome
from app.schemas.messaging import Channel, InboundMessage
from app.services.assistant_service import SafeAssistant
from app.services.booking_engine import BookingEngine
from app.services.bot_config_service import BotConfigService
from app.services.conversation_event_service import ConversationEventService
from app.services.workflow_engine import WORKFLOW_COMPLETED_MESSAGE, WorkflowEngine
from tests.fixtures.workflow_fixtures import (
    BOOKING_HANDOFF_DEFINITION,
    LEAD_CAPTURE_DEFINITION,
)


def _engine(db, clock, assistant=None):
    booking = BookingEngine(db, clock=clock)
    return WorkflowEngine(db, booking, SafeAssistant(assistant), clock=clock)


def _sessions(db, user_key):
    db.expire_all()
    return (
        db.query(ConversationSession)
        .filter(ConversationSession.user_key == user_key)
        .order_by(ConversationSession.created_at.asc())
        .all()
    )


@pytest.mark.asyncio
async def test_no_trigger_match_is_not_handled(db, clock, whatsapp_adapter, setup_lead_workflow):
    handled = await _engine(db, clock).try_handle(whatsapp_adapter, "hello there")

    assert handled is False
    assert _sessions(db, whatsapp_adapter.user_key) == []


@pytest.mark.asyncio
async def test_lead_capture_on_whatsapp(
    db, clock, whatsapp_adapter, transport, setup_bot, setup_lead_workflow, media_factory
):
    media_factory(
        setup_bot,
        "document",
        title="Price list",
        file_url="https://cdn.example.com/prices.pdf",
        file_name="prices.pdf",
        mime_type="application/pdf",
    )
    engine = _engine(db, clock)

    assert await engine.try_handle(whatsapp_adapter, "What's the PRICE of a haircut?")
    assert transport.last_text == "What's your name?"

    assert await engine.try_handle(whatsapp_adapter, "  Asha  ")
    assert transport.last_text.startswith("What are you interested in?")
    assert "1. Hair\n2. Skin" in transport.last_text

    assert await engine.try_handle(whatsapp_adapter, "3")
    assert transport.last_text.startswith("❌ Please choose one of the options")
    session = _sessions(db, whatsapp_adapter.user_key)[0]
    assert session.current_step == "interest"

    assert await engine.try_handle(whatsapp_adapter, "hair")

    contents = [content for _, content in transport.sent]
    documents = [c for c in contents if "document" in c]
    assert documents == [
        {
            "document": {"url": "https://cdn.example.com/prices.pdf"},
            "fileName": "prices.pdf",
            "mimetype": "application/pdf",
            "caption": "Price list",
        }
    ]
    assert transport.texts[-2] == "Here is our catalog:"
    assert transport.last_text == "Thanks, we'll be in touch!"

    session = _sessions(db, whatsapp_adapter.user_key)[0]
    assert session.is_completed
    assert session.outcome == SessionOutcome.COMPLETED.value
    assert session.collected_data == {"customer_name": "Asha", "interest": "hair"}

    inquiry = db.query(Inquiry).one()
    assert inquiry.source == "whatsapp"
    assert inquiry.customer_phone == "919800000001"
    assert inquiry.workflow_id == setup_lead_workflow.id
    assert inquiry.inquiry_data == {"customer_name": "Asha", "interest": "hair"}


@pytest.mark.asyncio
async def test_web_channel_falls_back_to_links(
    db, clock, web_adapter, web_sink, setup_web_bot, workflow_factory, media_factory
):
    workflow_factory(setup_web_bot, LEAD_CAPTURE_DEFINITION)
    media_factory(
        setup_web_bot,
        "document",
        title="Price list",
        file_url="https://cdn.example.com/prices.pdf",
    )
    engine = _engine(db, clock)

    for message in ("price list please", "Asha", "2"):
        assert await engine.try_handle(web_adapter, message)

    assert "📄 Price list\nhttps://cdn.example.com/prices.pdf" in web_sink.texts
    inquiry = db.query(Inquiry).one()
    assert inquiry.source == "web"
    assert inquiry.customer_phone is None
    assert inquiry.inquiry_data["interest"] == "Skin"


@pytest.mark.asyncio
async def test_start_booking_hands_off(
    db, clock, whatsapp_adapter, transport, setup_bot, workflow_factory, setup_services
):
    workflow_factory(setup_bot, BOOKING_HANDOFF_DEFINITION)
    engine = _engine(db, clock)

    assert await engine.try_handle(whatsapp_adapter, "I need an appointment")
    assert transport.last_text == "What would you like done?"
    assert await engine.try_handle(whatsapp_adapter, "haircut")

    workflow_session, booking_session = _sessions(db, whatsapp_adapter.user_key)
    assert workflow_session.flow_kind == FlowKind.WORKFLOW.value
    assert workflow_session.outcome == SessionOutcome.HANDED_OFF.value
    assert workflow_session.collected_data == {"topic": "haircut"}
    assert booking_session.flow_kind == FlowKind.BOOKING.value
    assert not booking_session.is_completed
    assert booking_session.current_step == BookingState.COLLECTING_NAME.value
    assert "What's your name?" in transport.last_text

    assert await engine.try_handle(whatsapp_adapter, "Asha") is False


@pytest.mark.asyncio
async def test_ai_response_step_replies_then_completes(
    db, clock, whatsapp_adapter, transport, setup_bot, workflow_factory, assistant
):
    workflow_factory(
        setup_bot,
        {
            "trigger": {"keywords": ["question"]},
            "steps": [
                {"id": "ask", "type": "ai_response", "prompt_message": "Ask away!"},
            ],
        },
    )
    engine = _engine(db, clock, assistant)
    events = ConversationEventService(db)

    for text in ("I have a question", "Do you open on Sundays?"):
        events.record_inbound(
            InboundMessage(
                channel=Channel.WHATSAPP,
                bot_id=setup_bot.id,
                user_key=whatsapp_adapter.user_key,
                text=text,
            )
        )
        await engine.try_handle(whatsapp_adapter, text)

    message, _, history = assistant.reply_calls[0]
    assert message == "Do you open on Sundays?"
    assert history[0] == {"role": "user", "content": "I have a question"}
    assert history[-1]["role"] == "assistant"
    assert {"role": "user", "content": "Do you open on Sundays?"} not in history
    assert transport.texts[-2:] == ["Happy to help!", WORKFLOW_COMPLETED_MESSAGE]


@pytest.mark.asyncio
async def test_longest_keyword_wins(db, clock, setup_bot, workflow_factory):
    generic = workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["hair"]}, "steps": [{"id": "a", "type": "collect_field"}]},
        name="generic",
    )
    specific = workflow_factory(
        setup_bot,
        {
            "trigger": {"keywords": ["hair color"]},
            "steps": [{"id": "b", "type": "collect_field"}],
        },
        name="specific",
    )
    engine = _engine(db, clock)

    workflow, _ = engine.match_trigger(setup_bot.id, "How much is HAIR COLOR?")
    assert workflow.id == specific.id

    workflow, _ = engine.match_trigger(setup_bot.id, "hair cut")
    assert workflow.id == generic.id


@pytest.mark.asyncio
async def test_equal_length_match_goes_to_oldest(db, clock, setup_bot, workflow_factory):
    older = workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["offer"]}, "steps": [{"id": "a", "type": "collect_field"}]},
    )
    workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["offer"]}, "steps": [{"id": "b", "type": "collect_field"}]},
    )

    workflow, _ = _engine(db, clock).match_trigger(setup_bot.id, "any offer today?")

    assert workflow.id == older.id


@pytest.mark.asyncio
async def test_unpublished_and_misconfigured_workflows_are_skipped(
    db, clock, setup_bot, workflow_factory
):
    workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["promo"]}, "steps": [{"id": "x", "type": "send_sms"}]},
    )
    workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["promo"]}, "steps": [{"id": "y", "type": "collect_field"}]},
        is_published=False,
    )
    valid = workflow_factory(
        setup_bot,
        {"trigger": {"keywords": ["promo"]}, "steps": [{"id": "z", "type": "collect_field"}]},
    )

    workflow, definition = _engine(db, clock).match_trigger(setup_bot.id, "promo?")

    assert workflow.id == valid.id
    assert definition.first_step().id == "z"


@pytest.mark.asyncio
async def test_deleted_workflow_aborts_open_session(
    db, clock, whatsapp_adapter, setup_lead_workflow
):
    engine = _engine(db, clock)
    await engine.try_handle(whatsapp_adapter, "price")
    db.delete(setup_lead_workflow)
    db.commit()

    handled = await engine.try_handle(whatsapp_adapter, "Asha")

    assert handled is False
    session = _sessions(db, whatsapp_adapter.user_key)[0]
    assert session.outcome == SessionOutcome.ABORTED.value


@pytest.mark.asyncio
async def test_workflows_disabled_for_bot(
    db, clock, whatsapp_adapter, setup_bot, setup_lead_workflow, bot_settings_factory
):
    config_row = bot_settings_factory(setup_bot, workflow_enabled=False)
    engine = _engine(db, clock)

    config = BotConfigService(db).get_config_for(setup_bot.id)
    assert config.workflow_enabled is config_row.workflow_enabled is False

    assert await engine.try_handle(whatsapp_adapter, "price", config) is False


@pytest.mark.asyncio
async def test_open_booking_session_is_left_alone(
    db, clock, whatsapp_adapter, setup_lead_workflow, setup_services
):
    engine = _engine(db, clock)
    await engine.booking.handle_message(whatsapp_adapter, "book")

    assert await engine.try_handle(whatsapp_adapter, "price") is False
