"""
WebSocket endpoint for the embeddable web chat widget.

One socket per widget session. Each frame is handled in its own DB session
so a long-lived connection never holds a transaction open.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from app.commands.webhooks.inbound_message_command import (
    InboundMessageCommand,
    inbound_from_web,
)
from app.core.app_state import AppState
from app.db import get_session_factory
from app.exceptions import BotNotFoundError
from app.schemas.messaging import WebChatMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/web", tags=["web-chat"])


def get_ws_app_state(websocket: WebSocket) -> AppState:
    return websocket.app.state.chatdesk


@router.websocket("/{bot_id}/ws/{session_id}")
async def web_chat_socket(
    websocket: WebSocket,
    bot_id: UUID,
    session_id: str,
    session_factory: sessionmaker = Depends(get_session_factory),
    state: AppState = Depends(get_ws_app_state),
) -> None:
    await websocket.accept()
    state.web_hub.connect(session_id, websocket)
    try:
        while True:
            raw = await websocket.receive_json()
            try:
                frame = WebChatMessage.model_validate(raw)
            except ValidationError:
                await websocket.send_json(
                    {"type": "error", "code": "invalid_frame", "message": "Invalid message"}
                )
                continue
            if frame.type == "ping":
                await websocket.send_json({"type": "pong"})
                continue
            if frame.type != "user_message":
                continue

            db = session_factory()
            try:
                command = InboundMessageCommand(db, state)
                await command.execute(
                    inbound_from_web(bot_id, session_id, frame.text, frame.message_id)
                )
            except BotNotFoundError:
                await websocket.send_json(
                    {"type": "error", "code": "bot_not_found", "message": "Bot not found"}
                )
                await websocket.close(code=4404)
                return
            finally:
                db.close()
    except WebSocketDisconnect:
        logger.debug("Web chat session %s disconnected", session_id)
    finally:
        state.web_hub.disconnect(session_id, websocket)
