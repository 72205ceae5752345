"""
Per-message dispatch.

Precedence, first match wins:
  1. an open booking conversation
  2. the workflow engine (open workflow, or a trigger match)
  3. a booking keyword, when booking is enabled
  4. an assistant-detected booking intent above the confidence threshold
  5. a free-form assistant reply
Turns for the same (bot, user) run one at a time.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.adapters.base import MessagingAdapter, TypingCapable
from app.config import Settings, get_settings
from app.core.session_locks import SessionLockRegistry
from app.schemas.ai import Intent, IntentResult
from app.schemas.messaging import TypingState
from app.services.ai_context_service import AIContextService
from app.services.assistant_service import (
    ConversationAssistant,
    SafeAssistant,
    default_reply,
    without_current,
)
from app.services.booking_engine import GENERIC_ERROR_MESSAGE, BookingEngine
from app.services.bot_config_service import BotConfig, BotConfigService
from app.services.conversation_event_service import ConversationEventService
from app.services.media_service import send_media_items
from app.services.workflow_engine import WorkflowEngine
from app.workers.llm import LLMAssistant, LLMRunner

logger = logging.getLogger(__name__)

MAX_SERVICE_IMAGES = 3

AssistantFactory = Callable[[Session], Optional[ConversationAssistant]]


def off_topic_redirect(business_type: Optional[str]) -> str:
    return (
        f"I'm here to help with {business_type or 'our business'} related inquiries. "
        "I can assist you with services, booking, pricing, location, and more. "
        "How can I help you today?"
    )


class Router:
    def __init__(
        self,
        llm: Optional[LLMRunner] = None,
        assistant_factory: Optional[AssistantFactory] = None,
        locks: Optional[SessionLockRegistry] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._llm = llm
        self._assistant_factory = assistant_factory
        self._locks = locks or SessionLockRegistry()
        self._settings = settings or get_settings()
        self._clock = clock

    @property
    def locks(self) -> SessionLockRegistry:
        return self._locks

    def _assistant(self, db: Session) -> SafeAssistant:
        if self._assistant_factory is not None:
            return SafeAssistant(self._assistant_factory(db))
        if self._llm is not None:
            return SafeAssistant(LLMAssistant(self._llm, AIContextService(db)))
        return SafeAssistant(None)

    async def dispatch(self, db: Session, adapter: MessagingAdapter, text: str) -> None:
        """Handle one inbound message end to end. Never raises."""
        async with self._locks.hold((adapter.bot_id, adapter.user_key)):
            await self._typing(adapter, TypingState.START)
            try:
                await self._dispatch(db, adapter, text)
            except Exception:
                logger.exception(
                    "Dispatch failed for bot=%s user=%s", adapter.bot_id, adapter.user_key
                )
                db.rollback()
                await adapter.send_error("internal_error", GENERIC_ERROR_MESSAGE)
            finally:
                await self._typing(adapter, TypingState.STOP)

    @staticmethod
    async def _typing(adapter: MessagingAdapter, state: TypingState) -> None:
        if isinstance(adapter, TypingCapable):
            await adapter.send_typing(state)

    async def _dispatch(self, db: Session, adapter: MessagingAdapter, text: str) -> None:
        config = BotConfigService(db).get_config_for(adapter.bot_id)
        if config is None:
            logger.warning("Ignoring message for unknown or inactive bot %s", adapter.bot_id)
            return

        assistant = self._assistant(db)
        booking = BookingEngine(db, clock=self._clock, settings=self._settings)
        workflows = WorkflowEngine(
            db, booking, assistant, clock=self._clock, settings=self._settings
        )

        if booking.get_active(adapter) is not None:
            await booking.handle_message(adapter, text, config)
            return

        if await workflows.try_handle(adapter, text, config):
            return

        if config.booking_enabled and config.matches_booking_keyword(text):
            logger.info("Booking keyword matched for bot=%s", adapter.bot_id)
            await booking.handle_message(adapter, text, config)
            return

        await self._free_form(db, adapter, text, config, booking, assistant)

    async def _free_form(
        self,
        db: Session,
        adapter: MessagingAdapter,
        text: str,
        config: BotConfig,
        booking: BookingEngine,
        assistant: SafeAssistant,
    ) -> None:
        if not config.ai_enabled:
            await adapter.send_text(
                config.auto_reply_message or default_reply(Intent.UNKNOWN)
            )
            return

        history = without_current(
            ConversationEventService(db).get_history_for_llm(
                adapter.bot_id, adapter.user_key, self._settings.history_limit
            ),
            text,
        )
        intent = await assistant.classify_intent(text, adapter.bot_id, history)

        if (
            config.booking_enabled
            and intent.intention == Intent.BOOKING_REQUEST
            and intent.confidence >= self._settings.booking_intent_confidence_threshold
        ):
            logger.info(
                "Booking intent (%.2f) for bot=%s", intent.confidence, adapter.bot_id
            )
            await booking.handle_message(adapter, text, config)
            return

        if intent.intention == Intent.OFF_TOPIC:
            profile = AIContextService(db).get_profile(adapter.bot_id)
            await adapter.send_text(
                off_topic_redirect(profile.business_type if profile else None)
            )
            return

        if await self._reply_with_media(db, adapter, intent):
            return

        reply = await assistant.generate_reply(
            text, intent.intention, adapter.bot_id, history
        )
        await adapter.send_text(reply)

    async def _reply_with_media(
        self, db: Session, adapter: MessagingAdapter, intent: IntentResult
    ) -> bool:
        """Location and service questions are answered with bot media when there is some."""
        media_types: List[str]
        if intent.intention == Intent.LOCATION_REQUEST:
            media_types, limit = ["location"], 1
        elif intent.intention == Intent.SERVICE_INQUIRY:
            media_types, limit = ["image"], MAX_SERVICE_IMAGES
        else:
            return False
        items = BotConfigService(db).get_media(adapter.bot_id, media_types)[:limit]
        if not items:
            return False
        await adapter.send_text(
            intent.suggested_response or default_reply(intent.intention)
        )
        await send_media_items(adapter, items)
        return True
