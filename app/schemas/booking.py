"""Booking flow state, draft data and reservation contracts."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FlowKind(str, Enum):
    BOOKING = "booking"
    WORKFLOW = "workflow"


class SessionOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    HANDED_OFF = "handed_off"
    ABORTED = "aborted"


class BookingState(str, Enum):
    """Booking steps in flow order. SHOWING_* states are never left at rest."""

    IDLE = "idle"
    COLLECTING_NAME = "collecting_name"
    COLLECTING_BOOKING_FOR = "collecting_booking_for"
    COLLECTING_GENDER = "collecting_gender"
    SHOWING_SERVICES = "showing_services"
    COLLECTING_SERVICE = "collecting_service"
    SHOWING_DATES = "showing_dates"
    COLLECTING_DATE = "collecting_date"
    SHOWING_TIME_SLOTS = "showing_time_slots"
    COLLECTING_TIME = "collecting_time"
    CONFIRMING = "confirming"
    COMPLETED = "completed"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that hold a slot
ACTIVE_RESERVATION_STATUSES = (ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value)


class BookingPolicy(BaseModel):
    """Per-bot booking toggles, captured once when a booking conversation starts."""

    require_booking_for: bool = True
    require_gender: bool = False
    confirmation_message: Optional[str] = None
    cancellation_message: Optional[str] = None


class BookingDraft(BaseModel):
    """Fields collected across booking turns; stored as the session's collected_data."""

    customer_name: Optional[str] = None
    booking_for: Optional[str] = None
    gender: Optional[Gender] = None
    service_id: Optional[UUID] = None
    service_name: Optional[str] = None
    service_price: Optional[Decimal] = None
    service_duration: Optional[int] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    customer_phone: Optional[str] = None

    def missing_fields(self, policy: BookingPolicy) -> list[str]:
        """Names of fields that must be filled before confirmation."""
        required = [
            "customer_name",
            "service_id",
            "service_name",
            "service_duration",
            "booking_date",
            "booking_time",
            "customer_phone",
        ]
        if policy.require_booking_for:
            required.append("booking_for")
        if policy.require_gender:
            required.append("gender")
        return [name for name in required if getattr(self, name) is None]

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ReservationRequest(BaseModel):
    business_id: UUID
    bot_id: Optional[UUID] = None
    service_id: Optional[UUID] = None
    service_name: str
    service_price: Optional[Decimal] = None
    booking_date: date
    booking_time: time
    duration_minutes: int = Field(gt=0)
    customer_name: str
    customer_phone: str
    booking_for: Optional[str] = None
    gender: Optional[str] = None
    notes: Optional[str] = None


class ReservationOutcome(BaseModel):
    ok: bool
    reservation_id: Optional[UUID] = None
    reason: Optional[str] = None

    @property
    def reference(self) -> Optional[str]:
        """Short human-facing booking reference."""
        if self.reservation_id is None:
            return None
        return str(self.reservation_id)[:8].upper()


SLOT_TAKEN = "slot_taken"
RESERVATION_ERROR = "error"
