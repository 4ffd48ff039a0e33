# ============================================================================
# app/services/booking/booking_service.py
# ============================================================================
"""Service for reading and canceling bookings"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models.booking import Booking, BookingStatus
import logging

logger = logging.getLogger(__name__)


class BookingService:
    """Owner-side booking operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: UUID) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found", {"booking_id": str(booking_id)})
        return booking

    @staticmethod
    def cancel_booking(
            db: Session,
            booking_id: UUID,
            now: Optional[datetime] = None
    ) -> Booking:
        """Mark a booking canceled so its interval is free again. Idempotent."""
        booking = BookingService.get_booking(db, booking_id)

        if booking.status == BookingStatus.CANCELED.value:
            return booking

        booking.status = BookingStatus.CANCELED.value
        booking.canceled_at = now or datetime.now(timezone.utc)
        db.commit()
        db.refresh(booking)

        logger.info(f"Canceled booking {booking.id}")
        return booking
