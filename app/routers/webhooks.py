"""
Webhook routes for inbound chat platform messages.

The WhatsApp transport POSTs each message it receives for a connected bot;
we normalize it, persist it and run it through the router before returning.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.commands.webhooks.inbound_message_command import (
    InboundMessageCommand,
    inbound_from_whatsapp,
)
from app.core.app_state import AppState, get_app_state
from app.db import get_db
from app.exceptions import BotNotFoundError, ChannelUnavailableError
from app.schemas.messaging import DispatchResult, WhatsAppInboundPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/whatsapp/{bot_id}", response_model=DispatchResult)
async def whatsapp_webhook(
    bot_id: UUID,
    payload: WhatsAppInboundPayload,
    db: Session = Depends(get_db),
    state: AppState = Depends(get_app_state),
) -> DispatchResult:
    """Receive one WhatsApp message for a bot and dispatch it."""
    command = InboundMessageCommand(db, state)
    try:
        return await command.execute(inbound_from_whatsapp(bot_id, payload))
    except BotNotFoundError as e:
        raise HTTPException(status_code=404, detail="Bot not found") from e
    except ChannelUnavailableError as e:
        logger.warning("WhatsApp webhook for disconnected bot %s", bot_id)
        raise HTTPException(
            status_code=503, detail="WhatsApp transport is not connected"
        ) from e
