"""
WhatsApp channel adapter.

Wraps a connected WhatsApp Web transport (pairing, auth state and reconnects
are owned by the transport). Users are addressed by phone number; the JID is
"<number>@s.whatsapp.net".
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from app.adapters.base import (
    AdapterContext,
    DocumentCapable,
    LocationCapable,
    MessagingAdapter,
    RichContentCapable,
    TypingCapable,
    rich_message_type,
)
from app.schemas.messaging import Channel, TypingState
from app.services.conversation_event_service import ConversationEventService

logger = logging.getLogger(__name__)

JID_SUFFIX = "@s.whatsapp.net"


class WhatsAppTransport(Protocol):
    """The subset of the WhatsApp socket the adapter needs."""

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any: ...

    async def send_presence_update(self, presence: str, jid: str) -> Any: ...


def to_jid(user_key: str) -> str:
    if "@" in user_key:
        return user_key
    return f"{user_key}{JID_SUFFIX}"


class WhatsAppAdapter(
    MessagingAdapter,
    DocumentCapable,
    RichContentCapable,
    TypingCapable,
    LocationCapable,
):
    def __init__(
        self,
        transport: WhatsAppTransport,
        context: AdapterContext,
        event_service: Optional[ConversationEventService] = None,
    ) -> None:
        super().__init__(context, event_service)
        self._transport = transport
        self._jid = to_jid(context.user_key)

    @property
    def channel(self) -> Channel:
        return Channel.WHATSAPP

    async def send_text(
        self, text: str, metadata: Optional[dict[str, Any]] = None
    ) -> None:
        await self._send_and_record(
            lambda: self._transport.send_message(self._jid, {"text": text}),
            text,
            "text",
            metadata,
        )

    async def send_document(
        self,
        url: str,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> None:
        content: dict[str, Any] = {
            "document": {"url": url},
            "fileName": file_name or url.rsplit("/", 1)[-1],
            "mimetype": mime_type or "application/pdf",
        }
        if caption:
            content["caption"] = caption
        await self._send_and_record(
            lambda: self._transport.send_message(self._jid, content),
            caption or file_name or url,
            "document",
            {"url": url, "file_name": file_name},
        )

    async def send_rich(
        self, components: dict[str, Any], metadata: Optional[dict[str, Any]] = None
    ) -> None:
        await self._send_and_record(
            lambda: self._transport.send_message(self._jid, components),
            components.get("caption") or None,
            rich_message_type(components),
            {**(metadata or {}), "components": components},
        )

    async def send_location(
        self,
        latitude: float,
        longitude: float,
        name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> None:
        location: dict[str, Any] = {
            "degreesLatitude": latitude,
            "degreesLongitude": longitude,
        }
        if name:
            location["name"] = name
        if address:
            location["address"] = address
        await self._send_and_record(
            lambda: self._transport.send_message(self._jid, {"location": location}),
            address or name,
            "location",
            {"latitude": latitude, "longitude": longitude},
        )

    async def send_typing(self, state: TypingState) -> None:
        presence = "composing" if state == TypingState.START else "paused"
        try:
            await self._transport.send_presence_update(presence, self._jid)
        except Exception as e:
            logger.debug("Typing indicator failed for %s: %s", self._jid, e)

    async def send_error(self, code: str, message: str) -> None:
        try:
            await self.send_text(f"⚠️ {message}", {"error_code": code})
        except Exception:
            logger.exception("Failed to deliver error message to %s", self._jid)
