"""
Web widget channel adapter.

Pushes JSON events to the browser session over its WebSocket. The user key
is the widget session id.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from app.adapters.base import (
    AdapterContext,
    MessagingAdapter,
    RichContentCapable,
    TypingCapable,
    rich_message_type,
)
from app.schemas.messaging import Channel, TypingState
from app.services.conversation_event_service import ConversationEventService

logger = logging.getLogger(__name__)


class WebEventSink(Protocol):
    async def send_event(self, session_id: str, event: dict[str, Any]) -> None: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebAdapter(MessagingAdapter, RichContentCapable, TypingCapable):
    def __init__(
        self,
        sink: WebEventSink,
        context: AdapterContext,
        event_service: Optional[ConversationEventService] = None,
    ) -> None:
        super().__init__(context, event_service)
        self._sink = sink

    @property
    def channel(self) -> Channel:
        return Channel.WEB

    async def send_text(
        self, text: str, metadata: Optional[dict[str, Any]] = None
    ) -> None:
        event = {
            "type": "bot_message",
            "id": str(uuid.uuid4()),
            "text": text,
            "ts": _now_iso(),
            "final": True,
        }
        await self._send_and_record(
            lambda: self._sink.send_event(self.user_key, event), text, "text", metadata
        )

    async def send_rich(
        self, components: dict[str, Any], metadata: Optional[dict[str, Any]] = None
    ) -> None:
        event = {
            "type": "bot_message",
            "id": str(uuid.uuid4()),
            "components": components,
            "text": components.get("caption") or "",
            "ts": _now_iso(),
            "final": True,
        }
        await self._send_and_record(
            lambda: self._sink.send_event(self.user_key, event),
            components.get("caption") or None,
            rich_message_type(components),
            {**(metadata or {}), "components": components},
        )

    async def send_typing(self, state: TypingState) -> None:
        try:
            await self._sink.send_event(
                self.user_key, {"type": "typing", "state": state.value}
            )
        except Exception as e:
            logger.debug("Typing event failed for session %s: %s", self.user_key, e)

    async def send_error(self, code: str, message: str) -> None:
        try:
            await self._sink.send_event(
                self.user_key, {"type": "error", "code": code, "message": message}
            )
        except Exception:
            logger.exception("Failed to deliver error event to session %s", self.user_key)
