"""
Command to handle one inbound chat message from any channel.

Resolves the bot, applies the rate limit, builds the channel adapter around
the connected transport, persists the inbound event and hands the text to
the router.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.adapters.base import AdapterContext, MessagingAdapter
from app.adapters.web import WebAdapter
from app.adapters.whatsapp import WhatsAppAdapter
from app.core.app_state import AppState
from app.exceptions import BotNotFoundError, ChannelUnavailableError
from app.models.bot import Bot
from app.schemas.messaging import (
    Channel,
    DispatchResult,
    InboundMessage,
    MessageMetadata,
    WhatsAppInboundPayload,
)
from app.services.bot_config_service import BotConfigService
from app.services.conversation_event_service import ConversationEventService


class InboundMessageCommand:
    def __init__(self, db: Session, state: AppState) -> None:
        self.db = db
        self.state = state
        self.conversation_event_service = ConversationEventService(db)
        self.logger = logging.getLogger(__name__)

    async def execute(self, inbound: InboundMessage) -> DispatchResult:
        """
        Dispatch an inbound message.

        Raises:
            BotNotFoundError: unknown or inactive bot, or a bot on another channel.
            ChannelUnavailableError: no connected transport for a WhatsApp bot.
        """
        bot = BotConfigService(self.db).get_bot(inbound.bot_id)
        if bot is None or bot.channel != inbound.channel.value:
            raise BotNotFoundError(inbound.bot_id)

        if not self.state.rate_limiter.allow(bot.id, inbound.user_key):
            self.logger.info("Rate limited bot=%s user=%s", bot.id, inbound.user_key)
            return DispatchResult(accepted=False, detail="rate_limited")

        adapter = self.build_adapter(bot, inbound)
        self.conversation_event_service.record_inbound(inbound)

        if not inbound.text.strip():
            return DispatchResult(accepted=False, detail="empty_message")

        await self.state.router.dispatch(self.db, adapter, inbound.text)
        return DispatchResult(accepted=True)

    def build_adapter(self, bot: Bot, inbound: InboundMessage) -> MessagingAdapter:
        context = AdapterContext(
            bot_id=bot.id, business_id=bot.business_id, user_key=inbound.user_key
        )
        if inbound.channel == Channel.WHATSAPP:
            transport = self.state.connections.require(Channel.WHATSAPP, bot.id)
            return WhatsAppAdapter(transport, context, self.conversation_event_service)
        if inbound.channel == Channel.WEB:
            return WebAdapter(self.state.web_hub, context, self.conversation_event_service)
        raise ChannelUnavailableError(inbound.channel.value, bot.id)


def inbound_from_whatsapp(bot_id: UUID, payload: WhatsAppInboundPayload) -> InboundMessage:
    return InboundMessage(
        channel=Channel.WHATSAPP,
        bot_id=bot_id,
        user_key=payload.user_key,
        text=payload.text,
        message_id=payload.message_id,
        metadata=MessageMetadata(timestamp=payload.timestamp),
    )


def inbound_from_web(
    bot_id: UUID, session_id: str, text: str, message_id: Optional[str] = None
) -> InboundMessage:
    return InboundMessage(
        channel=Channel.WEB,
        bot_id=bot_id,
        user_key=session_id,
        text=text,
        message_id=message_id,
    )
