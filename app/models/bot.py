"""Bots and the operator-owned configuration the conversation core reads."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONType, UUIDType


class Bot(Base, TimestampMixin):
    __tablename__ = "bots"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUIDType, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    channel = Column(String(32), nullable=False)  # 'whatsapp' | 'web'
    phone_number = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    business = relationship("Business")
    settings = relationship("BotSettings", uselist=False, back_populates="bot")
    ai_context = relationship("BotAIContext", uselist=False, back_populates="bot")


class BotSettings(Base, TimestampMixin):
    """Per-bot flags. Missing row means defaults (see BotConfigService)."""

    __tablename__ = "bot_settings"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType,
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    booking_enabled = Column(Boolean, nullable=False, default=True)
    booking_trigger_keywords = Column(JSONType, nullable=True)
    booking_confirmation_message = Column(Text, nullable=True)
    booking_cancellation_message = Column(Text, nullable=True)
    booking_require_gender = Column(Boolean, nullable=False, default=False)
    booking_require_booking_for = Column(Boolean, nullable=False, default=True)
    workflow_enabled = Column(Boolean, nullable=False, default=True)
    ai_enabled = Column(Boolean, nullable=False, default=True)
    auto_reply_message = Column(Text, nullable=True)

    bot = relationship("Bot", back_populates="settings")


class BotAIContext(Base, TimestampMixin):
    """Business context fed to the reply assistant."""

    __tablename__ = "bot_ai_contexts"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType,
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    business_context = Column(Text, nullable=False, default="")
    system_prompt = Column(Text, nullable=True)
    allowed_topics = Column(JSONType, nullable=True)
    restricted_topics = Column(JSONType, nullable=True)
    response_style = Column(String(64), nullable=False, default="professional")
    max_response_length = Column(Integer, nullable=False, default=500)

    bot = relationship("Bot", back_populates="ai_context")


class BotMedia(Base, TimestampMixin):
    __tablename__ = "bot_media"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    media_type = Column(String(32), nullable=False)  # image|video|document|location|contact
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    file_url = Column(Text, nullable=True)
    file_name = Column(String(255), nullable=True)
    mime_type = Column(String(128), nullable=True)
    location_name = Column(String(255), nullable=True)
    location_address = Column(Text, nullable=True)
    location_latitude = Column(Float, nullable=True)
    location_longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
