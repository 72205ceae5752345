"""
Slot reservation.

reserve() is the only writer of reservations from the conversation side.
The partial unique index on (business_id, booking_date, booking_time) for
pending/confirmed rows is the guarantee; the read beforehand only saves a
doomed write.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.reservation import Reservation
from app.schemas.booking import (
    ACTIVE_RESERVATION_STATUSES,
    RESERVATION_ERROR,
    SLOT_TAKEN,
    ReservationOutcome,
    ReservationRequest,
    ReservationStatus,
)

logger = logging.getLogger(__name__)


class SlotReservationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def is_slot_taken(self, request: ReservationRequest) -> bool:
        return (
            self.db.query(Reservation.id)
            .filter(
                Reservation.business_id == request.business_id,
                Reservation.booking_date == request.booking_date,
                Reservation.booking_time == request.booking_time,
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
            .first()
            is not None
        )

    def reserve(self, request: ReservationRequest) -> ReservationOutcome:
        """Insert a pending reservation, or report slot_taken if the slot is held."""
        if self.is_slot_taken(request):
            logger.info(
                "Slot already held for business=%s %s %s",
                request.business_id,
                request.booking_date,
                request.booking_time,
            )
            return ReservationOutcome(ok=False, reason=SLOT_TAKEN)

        reservation = Reservation(
            business_id=request.business_id,
            bot_id=request.bot_id,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            booking_for=request.booking_for,
            gender=request.gender,
            service_id=request.service_id,
            service_name=request.service_name,
            service_price=request.service_price,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            duration_minutes=request.duration_minutes,
            status=ReservationStatus.PENDING.value,
            notes=request.notes,
        )
        self.db.add(reservation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Lost reservation race for business=%s %s %s",
                request.business_id,
                request.booking_date,
                request.booking_time,
            )
            return ReservationOutcome(ok=False, reason=SLOT_TAKEN)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Reservation insert failed")
            return ReservationOutcome(ok=False, reason=RESERVATION_ERROR)

        self.db.refresh(reservation)
        logger.info(
            "Reservation %s created for business=%s", reservation.id, request.business_id
        )
        return ReservationOutcome(ok=True, reservation_id=reservation.id)
