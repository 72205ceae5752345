"""
Bookable slots for a business on a given date.

Slots come from the weekly template for that weekday, stepped by the
template's slot duration, minus times held by pending/confirmed reservations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.business import BusinessService, BusinessTimeSlot
from app.models.reservation import Reservation
from app.schemas.booking import ACTIVE_RESERVATION_STATUSES


def template_weekday(day: date) -> int:
    """Weekday in template numbering: 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class DayAvailability:
    day: date
    template_slots: List[time]
    available: List[time]

    @property
    def has_template(self) -> bool:
        return bool(self.template_slots)

    @property
    def fully_booked(self) -> bool:
        return self.has_template and not self.available


def expand_window(start: time, end: time, duration_minutes: int) -> List[time]:
    """Slot start times from start while a full slot still fits before end."""
    if duration_minutes <= 0:
        return []
    anchor = date(2000, 1, 1)
    cursor = datetime.combine(anchor, start)
    stop = datetime.combine(anchor, end)
    step = timedelta(minutes=duration_minutes)
    slots = []
    while cursor + step <= stop:
        slots.append(cursor.time())
        cursor += step
    return slots


class AvailabilityService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_template_slots(self, business_id: UUID, day: date) -> List[time]:
        windows = (
            self.db.query(BusinessTimeSlot)
            .filter(
                BusinessTimeSlot.business_id == business_id,
                BusinessTimeSlot.day_of_week == template_weekday(day),
                BusinessTimeSlot.is_active.is_(True),
            )
            .order_by(BusinessTimeSlot.start_time.asc())
            .all()
        )
        slots: set[time] = set()
        for window in windows:
            slots.update(
                expand_window(window.start_time, window.end_time, window.slot_duration)
            )
        return sorted(slots)

    def get_taken_times(self, business_id: UUID, day: date) -> set[time]:
        rows = (
            self.db.query(Reservation.booking_time)
            .filter(
                Reservation.business_id == business_id,
                Reservation.booking_date == day,
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
            .all()
        )
        return {row[0] for row in rows}

    def get_day_availability(self, business_id: UUID, day: date) -> DayAvailability:
        template = self.get_template_slots(business_id, day)
        if not template:
            return DayAvailability(day=day, template_slots=[], available=[])
        taken = self.get_taken_times(business_id, day)
        available = [slot for slot in template if slot not in taken]
        return DayAvailability(day=day, template_slots=template, available=available)

    def list_active_services(self, business_id: UUID) -> List[BusinessService]:
        return (
            self.db.query(BusinessService)
            .filter(
                BusinessService.business_id == business_id,
                BusinessService.is_active.is_(True),
            )
            .order_by(BusinessService.display_order.asc(), BusinessService.name.asc())
            .all()
        )
