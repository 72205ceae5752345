"""
Service for persisting conversation events (inbound/outbound).

Events are immutable; only insert. No update/delete of event content.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.conversation_event import ConversationEvent
from app.schemas.messaging import Channel, InboundMessage, MessageDirection


class ConversationEventService:
    """Create and read conversation events. No update/delete (immutable)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record_inbound(self, inbound: InboundMessage) -> ConversationEvent:
        """Persist an inbound message as a conversation event."""
        event = ConversationEvent(
            direction=MessageDirection.INBOUND.value,
            channel=inbound.channel.value,
            bot_id=inbound.bot_id,
            user_key=inbound.user_key,
            message_type="text",
            message_id=inbound.message_id,
            text=inbound.text or None,
            metadata_=inbound.metadata.model_dump(mode="json", exclude_none=True),
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def record_outbound(
        self,
        channel: Channel,
        bot_id: UUID,
        user_key: str,
        text: Optional[str],
        message_type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ConversationEvent:
        """Persist an outbound message as a conversation event."""
        event = ConversationEvent(
            direction=MessageDirection.OUTBOUND.value,
            channel=channel.value,
            bot_id=bot_id,
            user_key=user_key,
            message_type=message_type,
            text=text,
            metadata_=metadata or {},
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_conversation_events(
        self,
        bot_id: UUID,
        user_key: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ConversationEvent]:
        """Fetch events for a bot, optionally one user. Ordered by created_at."""
        q = (
            self.db.query(ConversationEvent)
            .filter(ConversationEvent.bot_id == bot_id)
            .order_by(ConversationEvent.created_at.asc())
        )
        if user_key is not None:
            q = q.filter(ConversationEvent.user_key == user_key)
        return q.offset(skip).limit(limit).all()

    def get_history_for_llm(
        self, bot_id: UUID, user_key: str, limit: int = 10
    ) -> List[Dict[str, str]]:
        """
        Last `limit` text events as role/content dicts, oldest first.

        Inbound rows become "user", outbound rows "assistant".
        """
        rows = (
            self.db.query(ConversationEvent)
            .filter(
                ConversationEvent.bot_id == bot_id,
                ConversationEvent.user_key == user_key,
                ConversationEvent.text.isnot(None),
            )
            .order_by(ConversationEvent.created_at.desc())
            .limit(limit)
            .all()
        )
        history = []
        for row in reversed(rows):
            role = (
                "user" if row.direction == MessageDirection.INBOUND.value else "assistant"
            )
            history.append({"role": role, "content": row.text})
        return history
