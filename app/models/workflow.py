from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONType, UUIDType


class Workflow(Base, TimestampMixin):
    """Operator-authored guided conversation. `definition` holds trigger, steps and actions."""

    __tablename__ = "workflows"

    __table_args__ = (
        Index("ix_workflows_bot_published", "bot_id", "is_published", "is_active"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    definition = Column(JSONType, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    is_published = Column(Boolean, nullable=False, default=False)
