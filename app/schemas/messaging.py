"""
Normalized message contracts.

Inbound messages from every channel are converted into these shapes before
they reach the router.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Channel(str, Enum):
    """Supported chat channels."""

    WHATSAPP = "whatsapp"
    WEB = "web"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class TypingState(str, Enum):
    START = "start"
    STOP = "stop"


class MessageMetadata(BaseModel):
    """Metadata for normalized messages (locale, timestamp)."""

    locale: Optional[str] = None
    timestamp: Optional[datetime] = None  # ISO8601


class InboundMessage(BaseModel):
    """Normalized inbound message (transport → core)."""

    channel: Channel
    bot_id: UUID
    user_key: str
    text: str = ""
    message_id: Optional[str] = None
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class WhatsAppInboundPayload(BaseModel):
    """Message pushed by the WhatsApp transport for a connected bot."""

    from_: str = Field(alias="from", min_length=1)
    text: str = ""
    message_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    push_name: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def user_key(self) -> str:
        """Bare phone number, without the JID suffix."""
        return self.from_.split("@", 1)[0]


class WebChatMessage(BaseModel):
    """Frame received from the web widget over its WebSocket."""

    type: str = "user_message"
    text: str = ""
    message_id: Optional[str] = None


class DispatchResult(BaseModel):
    accepted: bool
    detail: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)
