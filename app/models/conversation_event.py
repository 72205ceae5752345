"""
ConversationEvent model for storing inbound and outbound chat messages.

Immutable events only (insert). This is the message audit trail: query by
bot, channel and user_key, order by created_at to rebuild a conversation.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Text, Index

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONType, UUIDType


class ConversationEvent(Base, TimestampMixin):
    __tablename__ = "conversation_events"

    __table_args__ = (
        Index(
            "ix_conversation_events_bot_user_created",
            "bot_id",
            "user_key",
            "created_at",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    direction = Column(String(16), nullable=False)  # 'inbound' | 'outbound'
    channel = Column(String(32), nullable=False)
    bot_id = Column(UUIDType, nullable=False)
    user_key = Column(String(255), nullable=False)
    message_type = Column(String(32), nullable=False, default="text")
    message_id = Column(String(255), nullable=True)  # platform message id
    text = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=True, default=dict)
