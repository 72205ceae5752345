"""
Booking conversation engine.

A fixed state machine that collects one field per turn and ends in a
reservation. All state lives in the ConversationSession row, so any turn can
run on a fresh process. Every turn persists the new state before sending the
message that describes it.
"""

from __future__ import annotations

import logging
from datetime import date, time, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.adapters.base import MessagingAdapter
from app.config import Settings, get_settings
from app.exceptions import BotNotFoundError
from app.models.conversation_session import ConversationSession
from app.schemas.booking import (
    SLOT_TAKEN,
    BookingDraft,
    BookingPolicy,
    BookingState,
    FlowKind,
    ReservationRequest,
    SessionOutcome,
)
from app.services import booking_validator as validators
from app.services.availability_service import AvailabilityService
from app.services.bot_config_service import BotConfig, BotConfigService
from app.services.conversation_session_service import (
    Clock,
    ConversationSessionService,
    utc_now,
)
from app.services.reservation_service import SlotReservationService

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    'Sorry, something went wrong. Please try again or type "cancel" to start over.'
)
DEFAULT_CONFIRMATION_MESSAGE = (
    "Your booking has been confirmed! We look forward to seeing you."
)
DEFAULT_CANCELLATION_MESSAGE = (
    "Your booking has been cancelled. Feel free to book again anytime!"
)
SLOT_TAKEN_MESSAGE = (
    "This time slot was just booked by someone else. Please select another time."
)
NO_SERVICES_MESSAGE = (
    "😔 Sorry, no services are available for booking right now. "
    "Please contact us directly."
)
NO_SLOTS_MESSAGE = (
    "❌ Sorry, no time slots available for this date. Please select another date."
)
FULLY_BOOKED_MESSAGE = (
    "❌ Sorry, all slots are booked for this date. Please select another date."
)
GENDER_MENU = "1. Male\n2. Female\n3. Other"


def format_time(value: time) -> str:
    """12-hour clock, e.g. 9:30 AM."""
    return value.strftime("%I:%M %p").lstrip("0")


def format_date_label(value: date, today: date) -> str:
    if value == today:
        return "Today"
    if (value - today).days == 1:
        return "Tomorrow"
    return f"{value:%b} {value.day}"


def format_price(price: Optional[Decimal], currency: str) -> Optional[str]:
    if price is None:
        return None
    amount = Decimal(price)
    if amount == amount.to_integral_value():
        return f"{currency}{int(amount)}"
    return f"{currency}{amount:.2f}"


class BookingEngine:
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock or utc_now
        self.sessions = ConversationSessionService(
            db, self.settings.session_ttl_minutes, self.clock
        )
        self.bot_config = BotConfigService(db)
        self.availability = AvailabilityService(db)
        self.reservations = SlotReservationService(db)
        self._handlers: Dict[BookingState, Callable[..., Awaitable[None]]] = {
            BookingState.IDLE: self._on_idle,
            BookingState.COLLECTING_NAME: self._on_name,
            BookingState.COLLECTING_BOOKING_FOR: self._on_booking_for,
            BookingState.COLLECTING_GENDER: self._on_gender,
            BookingState.SHOWING_SERVICES: self._on_showing_services,
            BookingState.COLLECTING_SERVICE: self._on_service,
            BookingState.SHOWING_DATES: self._on_showing_dates,
            BookingState.COLLECTING_DATE: self._on_date,
            BookingState.SHOWING_TIME_SLOTS: self._on_showing_time_slots,
            BookingState.COLLECTING_TIME: self._on_time,
            BookingState.CONFIRMING: self._on_confirm,
            BookingState.COMPLETED: self._on_idle,
        }

    def today(self) -> date:
        zone_name = self.settings.booking_timezone
        zone = timezone.utc if zone_name.upper() == "UTC" else ZoneInfo(zone_name)
        return self.clock().astimezone(zone).date()

    def get_active(
        self, adapter: MessagingAdapter
    ) -> Optional[ConversationSession]:
        return self.sessions.get_active(
            adapter.bot_id, adapter.user_key, FlowKind.BOOKING
        )

    async def handle_message(
        self,
        adapter: MessagingAdapter,
        text: str,
        config: Optional[BotConfig] = None,
    ) -> None:
        """Run one booking turn: continue the open booking, or start one."""
        try:
            await self._handle(adapter, text, config)
        except Exception:
            logger.exception(
                "Booking turn failed for bot=%s user=%s",
                adapter.bot_id,
                adapter.user_key,
            )
            self.db.rollback()
            await adapter.send_error("booking_error", GENERIC_ERROR_MESSAGE)

    async def _handle(
        self, adapter: MessagingAdapter, text: str, config: Optional[BotConfig]
    ) -> None:
        session = self.get_active(adapter)
        if session is None:
            session = self._start_session(adapter, config)

        state = BookingState(session.current_step)
        if state != BookingState.CONFIRMING and validators.is_cancel(text):
            await self._cancel(adapter, session)
            return

        await self._handlers[state](adapter, session, text)

    def _start_session(
        self, adapter: MessagingAdapter, config: Optional[BotConfig]
    ) -> ConversationSession:
        # Policy is read here only; later turns use the snapshot on the session
        if config is None:
            config = self.bot_config.get_config_for(adapter.bot_id)
            if config is None:
                raise BotNotFoundError(adapter.bot_id)
        draft = BookingDraft(customer_phone=adapter.user_key)
        return self.sessions.start_session(
            bot_id=adapter.bot_id,
            user_key=adapter.user_key,
            channel=adapter.channel.value,
            flow_kind=FlowKind.BOOKING,
            current_step=BookingState.IDLE.value,
            collected_data=draft.to_storage(),
            flow_settings=config.booking_policy().model_dump(mode="json"),
        )

    # -- session helpers -------------------------------------------------

    @staticmethod
    def _draft(session: ConversationSession) -> BookingDraft:
        return BookingDraft.model_validate(session.collected_data or {})

    @staticmethod
    def _policy(session: ConversationSession) -> BookingPolicy:
        return BookingPolicy.model_validate(session.flow_settings or {})

    def _save(
        self, session: ConversationSession, state: BookingState, draft: BookingDraft
    ) -> None:
        self.sessions.save_progress(session, state.value, draft.to_storage())

    async def _reprompt(
        self, adapter: MessagingAdapter, session: ConversationSession, message: str
    ) -> None:
        """Invalid input: same state, slide the expiry, explain and ask again."""
        self.sessions.touch(session)
        await adapter.send_text(message)

    async def _cancel(
        self, adapter: MessagingAdapter, session: ConversationSession
    ) -> None:
        policy = self._policy(session)
        self.sessions.complete(session, SessionOutcome.CANCELLED)
        logger.info("Booking session %s cancelled by user", session.id)
        await adapter.send_text(
            f"❌ {policy.cancellation_message or DEFAULT_CANCELLATION_MESSAGE}"
        )

    # -- state handlers --------------------------------------------------

    async def _on_idle(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        draft = self._draft(session)
        self._save(session, BookingState.COLLECTING_NAME, draft)
        await adapter.send_text(
            "👋 Hi! I'll help you book an appointment.\n\n📝 What's your name?"
        )

    async def _on_name(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        result = validators.validate_name(text)
        if not result.valid:
            await self._reprompt(
                adapter, session, f"❌ {result.error}\n\nPlease enter your name again:"
            )
            return
        draft = self._draft(session)
        draft.customer_name = result.value
        policy = self._policy(session)
        if policy.require_booking_for:
            self._save(session, BookingState.COLLECTING_BOOKING_FOR, draft)
            await adapter.send_text(
                f"Great, {result.value}! 👤\n\nWho is this booking for?\n"
                '(Reply "self" if it\'s for you)'
            )
            return
        draft.booking_for = "self"
        await self._after_booking_for(adapter, session, draft, f"Great, {result.value}!")

    async def _on_booking_for(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        result = validators.validate_booking_for(text)
        if not result.valid:
            await self._reprompt(
                adapter, session, f'❌ {result.error}\n\nPlease enter the name or "self":'
            )
            return
        draft = self._draft(session)
        draft.booking_for = result.value
        await self._after_booking_for(adapter, session, draft, "Perfect!")

    async def _after_booking_for(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        draft: BookingDraft,
        lead: str,
    ) -> None:
        if self._policy(session).require_gender:
            self._save(session, BookingState.COLLECTING_GENDER, draft)
            await adapter.send_text(
                f"{lead}\n\nWhat's the gender?\n\n{GENDER_MENU}\n\nReply with number or name:"
            )
            return
        await self._show_services(adapter, session, draft)

    async def _on_gender(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        result = validators.validate_gender(text)
        if not result.valid:
            await self._reprompt(
                adapter, session, f"❌ {result.error}\n\nPlease select:\n{GENDER_MENU}"
            )
            return
        draft = self._draft(session)
        draft.gender = result.value
        await self._show_services(adapter, session, draft)

    async def _on_showing_services(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        await self._show_services(adapter, session, self._draft(session))

    async def _show_services(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        draft: BookingDraft,
    ) -> None:
        services = self.availability.list_active_services(adapter.business_id)
        if not services:
            await self._abort_no_services(adapter, session)
            return
        self._save(session, BookingState.COLLECTING_SERVICE, draft)
        await adapter.send_text(self._services_text(services))

    def _services_text(self, services: Sequence) -> str:
        lines = ["💇 Here are our services:", ""]
        for index, service in enumerate(services, start=1):
            price = format_price(service.price, self.settings.currency_symbol)
            line = f"{index}. {service.name} - {price or 'Price on request'}"
            if service.duration_minutes:
                line += f" ({service.duration_minutes} min)"
            lines.append(line)
            if service.description:
                lines.append(f"   {service.description}")
        lines.append("")
        lines.append("Reply with the number or service name:")
        return "\n".join(lines)

    async def _abort_no_services(
        self, adapter: MessagingAdapter, session: ConversationSession
    ) -> None:
        logger.warning(
            "Business %s has no active services; cancelling booking session %s",
            adapter.business_id,
            session.id,
        )
        self.sessions.complete(session, SessionOutcome.CANCELLED)
        await adapter.send_text(NO_SERVICES_MESSAGE)

    async def _on_service(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        services = self.availability.list_active_services(adapter.business_id)
        if not services:
            await self._abort_no_services(adapter, session)
            return
        result = validators.validate_service_choice(text, services)
        if not result.valid:
            await self._reprompt(
                adapter,
                session,
                f"❌ {result.error}\n\nPlease select a service by number or name:",
            )
            return
        service = result.value
        draft = self._draft(session)
        draft.service_id = service.id
        draft.service_name = service.name
        draft.service_price = service.price
        draft.service_duration = service.duration_minutes
        await self._show_dates(
            adapter, session, draft, f"Great choice! {service.name} selected. 📅"
        )

    async def _on_showing_dates(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        await self._show_dates(adapter, session, self._draft(session))

    def _dates_text(self, lead: Optional[str] = None) -> str:
        today = self.today()
        lines = []
        if lead:
            lines.extend([lead, ""])
        lines.extend(["Available dates:", ""])
        window = validators.booking_window(today, self.settings.booking_window_days)
        for index, day in enumerate(window, start=1):
            lines.append(f"{index}. {format_date_label(day, today)} ({day.isoformat()})")
        lines.append("")
        lines.append("Reply with the number or date:")
        return "\n".join(lines)

    async def _show_dates(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        draft: BookingDraft,
        lead: Optional[str] = None,
    ) -> None:
        draft.booking_date = None
        draft.booking_time = None
        self._save(session, BookingState.COLLECTING_DATE, draft)
        await adapter.send_text(self._dates_text(lead))

    async def _on_date(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        result = validators.validate_date_choice(
            text, self.today(), self.settings.booking_window_days
        )
        if not result.valid:
            await self._reprompt(
                adapter, session, f"❌ {result.error}\n\nReply with the number or date:"
            )
            return
        draft = self._draft(session)
        draft.booking_date = result.value
        await self._show_time_slots(adapter, session, draft)

    async def _on_showing_time_slots(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        await self._show_time_slots(adapter, session, self._draft(session))

    def _slots_text(
        self, day: date, slots: List[time], lead: Optional[str] = None
    ) -> str:
        lines = []
        if lead:
            lines.extend([lead, ""])
        lines.extend(
            [f"Available time slots for {format_date_label(day, self.today())}: ⏰", ""]
        )
        for index, slot in enumerate(slots, start=1):
            lines.append(f"{index}. {format_time(slot)}")
        lines.append("")
        lines.append("Reply with the number:")
        return "\n".join(lines)

    async def _show_time_slots(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        draft: BookingDraft,
        lead: Optional[str] = None,
    ) -> None:
        if draft.booking_date is None:
            await self._show_dates(adapter, session, draft, lead)
            return
        day = self.availability.get_day_availability(
            adapter.business_id, draft.booking_date
        )
        if not day.available:
            notice = FULLY_BOOKED_MESSAGE if day.fully_booked else NO_SLOTS_MESSAGE
            if lead:
                notice = f"{lead}\n\n{notice}"
            await self._show_dates(adapter, session, draft, notice)
            return
        draft.booking_time = None
        self._save(session, BookingState.COLLECTING_TIME, draft)
        await adapter.send_text(self._slots_text(day.day, day.available, lead))

    async def _on_time(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        draft = self._draft(session)
        if draft.booking_date is None:
            await self._show_dates(adapter, session, draft)
            return
        # Indexes refer to the list as it stands now, not the one shown earlier
        day = self.availability.get_day_availability(
            adapter.business_id, draft.booking_date
        )
        if not day.available:
            await self._show_time_slots(adapter, session, draft)
            return
        result = validators.validate_time_choice(text, day.available)
        if not result.valid:
            await self._reprompt(
                adapter,
                session,
                f"❌ {result.error}\n\n" + self._slots_text(day.day, day.available),
            )
            return
        draft.booking_time = result.value
        missing = draft.missing_fields(self._policy(session))
        if missing:
            logger.warning(
                "Booking session %s reached confirmation without %s", session.id, missing
            )
            await self._resume_missing(adapter, session, draft, missing)
            return
        self._save(session, BookingState.CONFIRMING, draft)
        await adapter.send_text(self._summary_text(draft))

    async def _resume_missing(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        draft: BookingDraft,
        missing: List[str],
    ) -> None:
        if "customer_name" in missing:
            self._save(session, BookingState.COLLECTING_NAME, draft)
            await adapter.send_text("📝 What's your name?")
        elif "booking_for" in missing:
            self._save(session, BookingState.COLLECTING_BOOKING_FOR, draft)
            await adapter.send_text('Who is this booking for?\n(Reply "self" if it\'s for you)')
        elif "gender" in missing:
            self._save(session, BookingState.COLLECTING_GENDER, draft)
            await adapter.send_text(f"What's the gender?\n\n{GENDER_MENU}")
        elif {"service_id", "service_name", "service_duration"} & set(missing):
            await self._show_services(adapter, session, draft)
        else:
            await self._show_dates(adapter, session, draft)

    def _summary_text(self, draft: BookingDraft) -> str:
        lines = [
            "Perfect! Let me confirm your booking:",
            "",
            "📅 Booking Details",
            f"👤 Name: {draft.customer_name}",
            f"👥 For: {draft.booking_for or 'self'}",
        ]
        if draft.gender is not None:
            lines.append(f"⚧ Gender: {draft.gender.value}")
        lines.append(f"💇 Service: {draft.service_name}")
        lines.append(f"📅 Date: {format_date_label(draft.booking_date, self.today())}")
        lines.append(f"⏰ Time: {format_time(draft.booking_time)}")
        price = format_price(draft.service_price, self.settings.currency_symbol)
        if price:
            lines.append(f"💰 Price: {price}")
        lines.append("")
        lines.append("Reply *CONFIRM* to book or *CANCEL* to start over.")
        return "\n".join(lines)

    async def _on_confirm(
        self, adapter: MessagingAdapter, session: ConversationSession, text: str
    ) -> None:
        result = validators.validate_confirmation(text)
        if not result.valid:
            await self._reprompt(adapter, session, f"❌ {result.error}")
            return
        if not result.value:
            await self._cancel(adapter, session)
            return

        draft = self._draft(session)
        outcome = self.reservations.reserve(
            ReservationRequest(
                business_id=adapter.business_id,
                bot_id=adapter.bot_id,
                service_id=draft.service_id,
                service_name=draft.service_name,
                service_price=draft.service_price,
                booking_date=draft.booking_date,
                booking_time=draft.booking_time,
                duration_minutes=draft.service_duration,
                customer_name=draft.customer_name,
                customer_phone=draft.customer_phone or adapter.user_key,
                booking_for=draft.booking_for,
                gender=draft.gender.value if draft.gender else None,
            )
        )
        if outcome.ok:
            policy = self._policy(session)
            self.sessions.complete(
                session,
                SessionOutcome.COMPLETED,
                current_step=BookingState.COMPLETED.value,
                collected_data=draft.to_storage(),
            )
            await adapter.send_text(
                "✅ Booking confirmed!\n\n"
                f"Booking ID: #{outcome.reference}\n\n"
                f"{policy.confirmation_message or DEFAULT_CONFIRMATION_MESSAGE}\n\n"
                "We'll send you a reminder before your appointment. 📲"
            )
            return
        if outcome.reason == SLOT_TAKEN:
            await self._show_time_slots(
                adapter, session, draft, f"❌ {SLOT_TAKEN_MESSAGE}"
            )
            return
        # Storage failure: stay in CONFIRMING so a retry can succeed
        self.sessions.touch(session)
        await adapter.send_error("reservation_failed", GENERIC_ERROR_MESSAGE)
