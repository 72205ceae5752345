"""
Reservation: a booked (business, date, time) slot.

Only pending and confirmed reservations hold a slot; the partial unique
index is what makes concurrent confirmations safe.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import UUIDType


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    __table_args__ = (
        Index(
            "uq_reservations_active_slot",
            "business_id",
            "booking_date",
            "booking_time",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("ix_reservations_business_date", "business_id", "booking_date"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUIDType, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    bot_id = Column(UUIDType, ForeignKey("bots.id", ondelete="SET NULL"), nullable=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(255), nullable=False)
    booking_for = Column(String(255), nullable=True)
    gender = Column(String(16), nullable=True)
    service_id = Column(
        UUIDType, ForeignKey("business_services.id", ondelete="SET NULL"), nullable=True
    )
    service_name = Column(String(255), nullable=False)
    service_price = Column(Numeric(10, 2), nullable=True)
    booking_date = Column(Date, nullable=False)
    booking_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    notes = Column(Text, nullable=True)
