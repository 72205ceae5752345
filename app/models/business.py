"""Businesses, their bookable services and the weekly availability template."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin
from app.models.types import UUIDType


class Business(Base, TimestampMixin):
    __tablename__ = "businesses"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    business_type = Column(String(128), nullable=True)
    category = Column(String(128), nullable=True)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(64), nullable=True)

    services = relationship(
        "BusinessService",
        back_populates="business",
        order_by="BusinessService.display_order",
    )


class BusinessService(Base, TimestampMixin):
    """A bookable service. Price and duration are copied onto reservations at booking time."""

    __tablename__ = "business_services"

    __table_args__ = (
        Index("ix_business_services_business_order", "business_id", "display_order"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUIDType, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)

    business = relationship("Business", back_populates="services")


class BusinessTimeSlot(Base, TimestampMixin):
    """Weekly availability window. day_of_week: 0=Sunday .. 6=Saturday."""

    __tablename__ = "business_time_slots"

    __table_args__ = (
        Index("ix_business_time_slots_business_day", "business_id", "day_of_week"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUIDType, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(SmallInteger, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration = Column(Integer, nullable=False, default=30)  # minutes
    is_active = Column(Boolean, nullable=False, default=True)
