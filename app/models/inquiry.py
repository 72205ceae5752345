from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONType, UUIDType


class Inquiry(Base, TimestampMixin):
    """Data collected by a finished workflow."""

    __tablename__ = "inquiries"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    bot_id = Column(
        UUIDType, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    workflow_id = Column(
        UUIDType, ForeignKey("workflows.id", ondelete="SET NULL"), nullable=True
    )
    customer_phone = Column(String(255), nullable=True)
    source = Column(String(32), nullable=False)
    inquiry_data = Column(JSONType, nullable=False, default=dict)
    status = Column(String(16), nullable=False, default="new")
