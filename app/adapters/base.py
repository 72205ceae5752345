"""
Channel adapter interface.

A MessagingAdapter wraps one already-connected transport handle for one
(bot, user) pair. Text delivery is the only required capability; documents,
rich content, typing indicators and locations are separate interfaces that a
channel may implement. Callers check them with isinstance().
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from app.schemas.messaging import Channel, TypingState
from app.services.conversation_event_service import ConversationEventService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterContext:
    bot_id: UUID
    business_id: UUID
    user_key: str


class MessagingAdapter(ABC):
    """Contract shared by every channel. Identity accessors have no side effects."""

    def __init__(
        self,
        context: AdapterContext,
        event_service: Optional[ConversationEventService] = None,
    ) -> None:
        self._context = context
        self._event_service = event_service

    @property
    @abstractmethod
    def channel(self) -> Channel: ...

    @property
    def user_key(self) -> str:
        return self._context.user_key

    @property
    def bot_id(self) -> UUID:
        return self._context.bot_id

    @property
    def business_id(self) -> UUID:
        return self._context.business_id

    @abstractmethod
    async def send_text(
        self, text: str, metadata: Optional[dict[str, Any]] = None
    ) -> None:
        """Deliver plain text and record it in the message audit trail."""
        ...

    @abstractmethod
    async def send_error(self, code: str, message: str) -> None:
        """Best-effort user-facing error. Must not raise."""
        ...

    async def _send_and_record(
        self,
        deliver: Callable[[], Awaitable[Any]],
        content: Optional[str],
        message_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Run a delivery and write the outbound record whether or not it succeeded."""
        status = "failed"
        try:
            result = await deliver()
            status = "sent"
            return result
        finally:
            self._record_outbound(
                content,
                message_type,
                {**(metadata or {}), "delivery_status": status},
            )

    def _record_outbound(
        self, content: Optional[str], message_type: str, metadata: dict[str, Any]
    ) -> None:
        if self._event_service is None:
            return
        try:
            self._event_service.record_outbound(
                channel=self.channel,
                bot_id=self.bot_id,
                user_key=self.user_key,
                text=content,
                message_type=message_type,
                metadata=metadata,
            )
        except Exception:
            # The audit write must never turn a delivered message into a failed turn
            logger.exception(
                "Failed to record outbound message",
                extra={"bot_id": str(self.bot_id), "channel": self.channel.value},
            )
            self._event_service.db.rollback()


class DocumentCapable(ABC):
    @abstractmethod
    async def send_document(
        self,
        url: str,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> None: ...


class RichContentCapable(ABC):
    @abstractmethod
    async def send_rich(
        self, components: dict[str, Any], metadata: Optional[dict[str, Any]] = None
    ) -> None:
        """Channel-specific structured payload, e.g. {"image": {"url": ...}, "caption": ...}."""
        ...


class TypingCapable(ABC):
    @abstractmethod
    async def send_typing(self, state: TypingState) -> None:
        """Best-effort typing indicator. Must not raise."""
        ...


class LocationCapable(ABC):
    @abstractmethod
    async def send_location(
        self,
        latitude: float,
        longitude: float,
        name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> None: ...


def rich_message_type(components: dict[str, Any]) -> str:
    """Audit message type for a rich payload, from its media key."""
    for kind in ("image", "video", "audio"):
        if kind in components:
            return kind
    return "rich"
