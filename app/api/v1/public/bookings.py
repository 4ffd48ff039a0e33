# ============================================================================
# FILE: app/api/v1/public/bookings.py
# Public booking submission - thin HTTP layer
# ============================================================================

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from app.config.database import get_db
from app.schemas.booking import BookingCreateRequest, BookingResponse
from app.services.booking.admission_service import AdmissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public-bookings"])


@router.post(
    "/booking-links/{link_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED
)
def create_booking(
    link_id: UUID,
    payload: BookingCreateRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Book a slot returned by the availability endpoint.

    Conflicts come back as 409 with kind slot_no_longer_available or
    slot_outside_availability; the client should refresh availability and retry.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.info(f"[{correlation_id}] Booking request on link {link_id} at {payload.start_time.isoformat()}")

    booking = AdmissionService.admit_booking(
        db,
        link_id,
        payload.start_time,
        payload.end_time,
        payload.invitee(),
        custom_answers=payload.custom_answers,
    )
    return BookingResponse.model_validate(booking)
