"""
ConversationSession: one row per booking or workflow conversation.

At most one open row (is_completed = false) may exist per (bot_id, user_key);
the partial unique index below enforces it for both flow kinds. Rows are
closed, never deleted.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    text,
)

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONType, UUIDType


class ConversationSession(Base, TimestampMixin):
    __tablename__ = "conversation_sessions"

    __table_args__ = (
        Index(
            "uq_conversation_sessions_one_open_per_user",
            "bot_id",
            "user_key",
            unique=True,
            postgresql_where=text("is_completed = false"),
            sqlite_where=text("is_completed = 0"),
        ),
        Index("ix_conversation_sessions_open_expiry", "is_completed", "expires_at"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False
    )
    user_key = Column(String(255), nullable=False)
    channel = Column(String(32), nullable=False)
    flow_kind = Column(String(16), nullable=False)  # 'booking' | 'workflow'
    current_step = Column(String(128), nullable=False)
    collected_data = Column(JSONType, nullable=False, default=dict)
    flow_settings = Column(JSONType, nullable=False, default=dict)
    workflow_id = Column(
        UUIDType, ForeignKey("workflows.id", ondelete="SET NULL"), nullable=True
    )
    is_completed = Column(Boolean, nullable=False, default=False)
    outcome = Column(String(16), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
