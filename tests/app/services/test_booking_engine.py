"""End-to-end tests for the booking conversation engine."""

from datetime import date, time

import pytest
from sqlalchemy.orm import Session

from app.adapters.base import AdapterContext
from app.adapters.whatsapp import WhatsAppAdapter
from app.models.conversation_session import ConversationSession
from app.models.reservation import Reservation
from app.schemas.booking import BookingState, SessionOutcome
from app.services.booking_engine import (
    DEFAULT_CANCELLATION_MESSAGE,
    FULLY_BOOKED_MESSAGE,
    NO_SERVICES_MESSAGE,
    NO_SLOTS_MESSAGE,
    SLOT_TAKEN_MESSAGE,
    BookingEngine,
    format_date_label,
    format_price,
    format_time,
)
from app.services.conversation_event_service import ConversationEventService
from app.services.conversation_session_service import ConversationSessionService

TOMORROW = date(2026, 10, 20)


def _session(db, adapter):
    db.expire_all()
    return (
        db.query(ConversationSession)
        .filter(ConversationSession.user_key == adapter.user_key)
        .order_by(ConversationSession.created_at.desc())
        .first()
    )


async def _run(engine, adapter, *messages):
    for message in messages:
        await engine.handle_message(adapter, message)


def _taken(business_id, at, name="Walk-in"):
    return Reservation(
        business_id=business_id,
        customer_name=name,
        customer_phone="910000000000",
        service_name="Haircut",
        booking_date=TOMORROW,
        booking_time=at,
        duration_minutes=30,
        status="confirmed",
    )


@pytest.fixture
def engine(db, clock):
    return BookingEngine(db, clock=clock)


@pytest.fixture
def salon(setup_services, setup_time_slots):
    return setup_services


def test_formatting_helpers():
    assert format_time(time(9, 0)) == "9:00 AM"
    assert format_time(time(14, 30)) == "2:30 PM"
    assert format_date_label(date(2026, 10, 19), date(2026, 10, 19)) == "Today"
    assert format_date_label(date(2026, 10, 20), date(2026, 10, 19)) == "Tomorrow"
    assert format_date_label(date(2026, 10, 23), date(2026, 10, 19)) == "Oct 23"
    assert format_price(None, "₹") is None
    assert format_price(300, "₹") == "₹300"


@pytest.mark.asyncio
async def test_full_booking_conversation(db, engine, whatsapp_adapter, transport, salon):
    await _run(engine, whatsapp_adapter, "book")
    assert "What's your name?" in transport.last_text
    assert _session(db, whatsapp_adapter).current_step == BookingState.COLLECTING_NAME.value

    await _run(engine, whatsapp_adapter, "Asha Rao")
    assert "Who is this booking for?" in transport.last_text

    await _run(engine, whatsapp_adapter, "self")
    services_text = transport.last_text
    assert "1. Haircut - ₹300 (30 min)" in services_text
    assert "3. Hair Color - ₹1200.50 (90 min)" in services_text
    assert "Old Package" not in services_text

    await _run(engine, whatsapp_adapter, "1")
    assert "Haircut selected" in transport.last_text
    assert "2. Tomorrow (2026-10-20)" in transport.last_text

    await _run(engine, whatsapp_adapter, "2")
    assert "1. 9:00 AM" in transport.last_text
    assert "3. 11:00 AM" in transport.last_text

    await _run(engine, whatsapp_adapter, "1")
    summary = transport.last_text
    assert "Name: Asha Rao" in summary
    assert "Service: Haircut" in summary
    assert "Date: Tomorrow" in summary
    assert "Time: 9:00 AM" in summary
    assert _session(db, whatsapp_adapter).current_step == BookingState.CONFIRMING.value

    await _run(engine, whatsapp_adapter, "CONFIRM")

    reservation = db.query(Reservation).one()
    assert reservation.customer_name == "Asha Rao"
    assert reservation.customer_phone == "919800000001"
    assert reservation.booking_for == "self"
    assert reservation.booking_date == TOMORROW
    assert reservation.booking_time == time(9)
    assert reservation.duration_minutes == 30
    assert reservation.status == "pending"
    reference = str(reservation.id)[:8].upper()
    assert f"Booking ID: #{reference}" in transport.last_text

    session = _session(db, whatsapp_adapter)
    assert session.is_completed
    assert session.outcome == SessionOutcome.COMPLETED.value
    assert session.current_step == BookingState.COMPLETED.value


@pytest.mark.asyncio
async def test_cancel_mid_flow(db, engine, whatsapp_adapter, transport, salon):
    await _run(engine, whatsapp_adapter, "book", "Asha", "self", "cancel")

    assert transport.last_text == f"❌ {DEFAULT_CANCELLATION_MESSAGE}"
    session = _session(db, whatsapp_adapter)
    assert session.outcome == SessionOutcome.CANCELLED.value
    assert db.query(Reservation).count() == 0


@pytest.mark.asyncio
async def test_cancel_at_confirmation_uses_custom_message(
    db, clock, whatsapp_adapter, transport, salon, setup_bot, bot_settings_factory
):
    bot_settings_factory(setup_bot, booking_cancellation_message="See you another time.")
    engine = BookingEngine(db, clock=clock)

    await _run(engine, whatsapp_adapter, "book", "Asha", "self", "1", "2", "1", "no")

    assert transport.last_text == "❌ See you another time."
    assert db.query(Reservation).count() == 0


@pytest.mark.asyncio
async def test_invalid_input_keeps_state(db, engine, whatsapp_adapter, transport, salon):
    await _run(engine, whatsapp_adapter, "book")
    before = _session(db, whatsapp_adapter).collected_data

    await _run(engine, whatsapp_adapter, "R2D2")
    first_error = transport.last_text
    await _run(engine, whatsapp_adapter, "R2D2")

    session = _session(db, whatsapp_adapter)
    assert session.current_step == BookingState.COLLECTING_NAME.value
    assert session.collected_data == before
    assert transport.last_text == first_error
    assert "Please enter your name again" in first_error


@pytest.mark.asyncio
async def test_superscript_digit_is_reprompted(
    db, engine, whatsapp_adapter, transport, salon, caplog
):
    await _run(engine, whatsapp_adapter, "book", "Asha Rao", "self")

    await _run(engine, whatsapp_adapter, "²")

    assert _session(db, whatsapp_adapter).current_step == BookingState.COLLECTING_SERVICE.value
    assert "Service not found" in transport.last_text
    assert "something went wrong" not in transport.last_text
    assert not [r for r in caplog.records if r.levelname == "ERROR"]


@pytest.mark.asyncio
async def test_resumes_from_stored_state(
    db, session_factory, clock, whatsapp_adapter, transport, salon
):
    await _run(BookingEngine(db, clock=clock), whatsapp_adapter, "book", "Asha", "self")

    fresh_db: Session = session_factory()
    try:
        fresh_adapter = WhatsAppAdapter(
            transport,
            AdapterContext(
                bot_id=whatsapp_adapter.bot_id,
                business_id=whatsapp_adapter.business_id,
                user_key=whatsapp_adapter.user_key,
            ),
            ConversationEventService(fresh_db),
        )
        await _run(BookingEngine(fresh_db, clock=clock), fresh_adapter, "2")
    finally:
        fresh_db.close()

    session = _session(db, whatsapp_adapter)
    assert session.current_step == BookingState.COLLECTING_DATE.value
    assert session.collected_data["service_name"] == "Beard Trim"
    assert session.collected_data["customer_name"] == "Asha"


@pytest.mark.asyncio
async def test_slot_taken_at_confirmation(
    db, engine, whatsapp_adapter, transport, salon, setup_business
):
    await _run(engine, whatsapp_adapter, "book", "Asha", "self", "1", "2", "1")
    db.add(_taken(setup_business.id, time(9)))
    db.commit()

    await _run(engine, whatsapp_adapter, "confirm")

    assert transport.last_text.startswith(f"❌ {SLOT_TAKEN_MESSAGE}")
    assert "9:00 AM" not in transport.last_text
    assert "1. 10:00 AM" in transport.last_text
    assert _session(db, whatsapp_adapter).current_step == BookingState.COLLECTING_TIME.value

    await _run(engine, whatsapp_adapter, "1", "confirm")

    mine = db.query(Reservation).filter(Reservation.customer_name == "Asha").one()
    assert mine.booking_time == time(10)
    assert _session(db, whatsapp_adapter).outcome == SessionOutcome.COMPLETED.value


@pytest.mark.asyncio
async def test_day_fills_up_before_confirmation(
    db, engine, whatsapp_adapter, transport, salon, setup_business
):
    await _run(engine, whatsapp_adapter, "book", "Asha", "self", "1", "2", "1")
    for hour in (9, 10, 11):
        db.add(_taken(setup_business.id, time(hour), name=f"Walk-in {hour}"))
    db.commit()

    await _run(engine, whatsapp_adapter, "confirm")

    assert SLOT_TAKEN_MESSAGE in transport.last_text
    assert FULLY_BOOKED_MESSAGE in transport.last_text
    assert "Available dates:" in transport.last_text
    session = _session(db, whatsapp_adapter)
    assert session.current_step == BookingState.COLLECTING_DATE.value
    assert "booking_date" not in session.collected_data


@pytest.mark.asyncio
async def test_no_services_cancels(db, engine, whatsapp_adapter, transport, setup_time_slots):
    await _run(engine, whatsapp_adapter, "book", "Asha", "self")

    assert transport.last_text == NO_SERVICES_MESSAGE
    assert _session(db, whatsapp_adapter).outcome == SessionOutcome.CANCELLED.value


@pytest.mark.asyncio
async def test_day_without_template_returns_to_dates(
    db, engine, whatsapp_adapter, transport, setup_services
):
    await _run(engine, whatsapp_adapter, "book", "Asha", "self", "1", "2")

    assert NO_SLOTS_MESSAGE in transport.last_text
    assert "Available dates:" in transport.last_text
    assert _session(db, whatsapp_adapter).current_step == BookingState.COLLECTING_DATE.value


@pytest.mark.asyncio
async def test_policy_is_snapshotted_at_start(
    db, clock, whatsapp_adapter, transport, salon, setup_bot, bot_settings_factory
):
    settings = bot_settings_factory(
        setup_bot, booking_require_gender=True, booking_require_booking_for=False
    )
    engine = BookingEngine(db, clock=clock)
    await _run(engine, whatsapp_adapter, "book")

    settings.booking_require_gender = False
    db.commit()
    await _run(engine, whatsapp_adapter, "Asha")

    assert "What's the gender?" in transport.last_text
    await _run(engine, whatsapp_adapter, "2")
    session = _session(db, whatsapp_adapter)
    assert session.collected_data["gender"] == "female"
    assert session.collected_data["booking_for"] == "self"
    assert session.current_step == BookingState.COLLECTING_SERVICE.value


@pytest.mark.asyncio
async def test_expired_session_starts_over(db, clock, whatsapp_adapter, transport, salon):
    engine = BookingEngine(db, clock=clock)
    await _run(engine, whatsapp_adapter, "book", "Asha")
    clock.advance(minutes=31)

    await _run(engine, whatsapp_adapter, "book")

    sessions = db.query(ConversationSession).order_by(ConversationSession.created_at).all()
    assert [s.outcome for s in sessions] == [SessionOutcome.EXPIRED.value, None]
    assert "What's your name?" in transport.last_text


@pytest.mark.asyncio
async def test_failure_sends_generic_error(db, engine, whatsapp_adapter, transport, salon, monkeypatch):
    await _run(engine, whatsapp_adapter, "book")

    def boom(*args, **kwargs):
        raise RuntimeError("db went away")

    monkeypatch.setattr(ConversationSessionService, "save_progress", boom)
    await _run(engine, whatsapp_adapter, "Asha")

    assert transport.last_text.startswith("⚠️ Sorry, something went wrong")
