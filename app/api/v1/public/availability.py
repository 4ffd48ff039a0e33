# ============================================================================
# FILE: app/api/v1/public/availability.py
# Public availability endpoints - thin HTTP layer
# ============================================================================

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from app.config.database import get_db
from app.core.exceptions import SchedulingValidationError
from app.schemas.booking import (
    AvailabilityQuery,
    AvailabilityResponse,
    BookingLinkPublicResponse,
    CustomQuestionResponse,
    SlotResponse,
)
from app.services.availability.availability_service import AvailabilityService
from app.utils.time_intervals import civil_to_instant, is_valid_timezone, project_to_zone
from pydantic import ValidationError

router = APIRouter(tags=["public-availability"])


@router.get("/booking-links/{link_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    link_id: UUID,
    start_date: date = Query(..., description="First civil date in the viewer's timezone"),
    end_date: date = Query(..., description="Last civil date in the viewer's timezone (inclusive)"),
    timezone_name: str = Query("UTC", alias="timezone"),
    db: Session = Depends(get_db)
):
    """
    Open slots for a booking link.

    The date range is read in the viewer's timezone; slots are returned as UTC
    instants with a display-only projection into that zone.
    """
    if not is_valid_timezone(timezone_name):
        raise SchedulingValidationError(f"Unknown timezone '{timezone_name}'", {"timezone": timezone_name})

    try:
        query = AvailabilityQuery(start_date=start_date, end_date=end_date, timezone=timezone_name)
    except ValidationError as e:
        raise SchedulingValidationError(
            "Invalid date range",
            {"fields": {".".join(str(p) for p in err["loc"]) or "range": err["msg"] for err in e.errors()}},
        ) from e

    range_start = civil_to_instant(query.start_date, time(0, 0), query.timezone)
    range_end = civil_to_instant(query.end_date + timedelta(days=1), time(0, 0), query.timezone)
    now = datetime.now(timezone.utc)

    slots = AvailabilityService.generate_slots(
        db, link_id, range_start, range_end, query.timezone, now
    )

    return AvailabilityResponse(
        link_id=link_id,
        timezone=query.timezone,
        slots=[
            SlotResponse(
                start=slot.start,
                end=slot.end,
                local_start=project_to_zone(slot.start, query.timezone),
                local_end=project_to_zone(slot.end, query.timezone),
            )
            for slot in slots
        ],
    )


@router.get("/booking/{username}/{slug}", response_model=BookingLinkPublicResponse)
def get_public_link(
    username: str,
    slug: str,
    db: Session = Depends(get_db)
):
    """Public view of a booking link: what an invitee sees before picking a time"""
    link = AvailabilityService.get_public_link(db, username, slug)
    owner = link.owner

    return BookingLinkPublicResponse(
        id=link.id,
        slug=link.slug,
        title=link.title,
        description=link.description,
        duration=link.duration,
        owner_name=owner.display_name or owner.username,
        booking_window_days=link.booking_window_days,
        custom_questions=[
            CustomQuestionResponse(
                id=q.id,
                label=q.label,
                type=q.type,
                required=bool(q.required),
                options=list(q.options or []),
            )
            for q in link.custom_questions
            if q.enabled
        ],
    )
