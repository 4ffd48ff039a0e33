# ============================================================================
# app/services/booking/admission_service.py
# The write path: re-validate a chosen slot and commit it atomically
# ============================================================================
"""
Booking admission.

Between a client listing slots and submitting one, another invitee may take it
or the owner may change their hours. Admission therefore re-runs the slot
computation for the requested day while holding the owner-day serialization
point:

    keyed lock (local / redis)  ->  transaction  ->  BookingDayLock FOR UPDATE
        -> recompute -> conflict check -> INSERT -> COMMIT

Of N concurrent requests for overlapping slots exactly one commits; the rest
see SlotNoLongerAvailable.
"""
import logging
from contextlib import ExitStack
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config.database import transaction
from app.config.redis import RedisKeys
from app.config.settings import get_settings
from app.core.exceptions import (
    SchedulingValidationError,
    SlotNoLongerAvailable,
    SlotOutsideAvailability,
)
from app.models.booking import Booking, BookingDayLock, BookingStatus
from app.models.booking_link import BookingLink
from app.schemas.booking import InviteeDetails
from app.services.availability.availability_service import AvailabilityService
from app.services.availability.schedule_service import ScheduleService
from app.services.booking.locks import LockTimeout, get_keyed_lock
from app.services.booking.question_validator import QuestionValidator
from app.utils.time_intervals import (
    Interval,
    civil_day_bounds,
    ensure_utc,
    iter_dates,
    local_date,
)

logger = logging.getLogger(__name__)


def _interval_dict(interval: Interval) -> Dict[str, str]:
    return {"start": interval.start.isoformat(), "end": interval.end.isoformat()}


class AdmissionService:
    """Handles booking admission"""

    @staticmethod
    def validate_invitee(invitee: Union[InviteeDetails, Dict[str, Any]]) -> InviteeDetails:
        if isinstance(invitee, InviteeDetails):
            return invitee
        try:
            return InviteeDetails.model_validate(invitee)
        except ValidationError as e:
            errors = {
                ".".join(str(p) for p in err["loc"]): err["msg"]
                for err in e.errors()
            }
            raise SchedulingValidationError("Invalid invitee details", {"fields": errors}) from e

    @staticmethod
    def lock_days(requested: Interval, link: BookingLink, tz: str) -> List[date]:
        """Owner-local dates the buffered request touches (normally just one)"""
        widened = requested.widen(
            timedelta(minutes=link.buffer_before or 0),
            timedelta(minutes=link.buffer_after or 0),
        )
        last_instant = widened.end - timedelta(microseconds=1)
        return list(iter_dates(local_date(widened.start, tz), local_date(last_instant, tz)))

    @staticmethod
    def _lock_owner_day(db: Session, owner_id: UUID, day: date) -> BookingDayLock:
        """Create the owner-day row if needed and take a row lock on it"""
        dialect = db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert
            db.execute(
                insert(BookingDayLock)
                .values(owner_id=owner_id, day=day)
                .on_conflict_do_nothing(index_elements=["owner_id", "day"])
            )
        elif not db.query(BookingDayLock).filter_by(owner_id=owner_id, day=day).first():
            db.add(BookingDayLock(owner_id=owner_id, day=day))
            db.flush()

        return db.query(BookingDayLock).filter(
            BookingDayLock.owner_id == owner_id,
            BookingDayLock.day == day
        ).with_for_update().one()

    @staticmethod
    def _check_slot(
            db: Session,
            link: BookingLink,
            requested: Interval,
            day: date,
            tz: str,
            now: datetime
    ) -> None:
        """Raise unless the requested slot is open right now. Runs under the lock."""
        earliest = now + timedelta(minutes=link.lead_time_minutes or 0)
        if requested.start <= earliest:
            raise SlotOutsideAvailability(
                "Slot is too soon to book",
                {"requested": _interval_dict(requested), "reason": "minimum_notice",
                 "earliest": earliest.isoformat()},
            )

        day_bounds = civil_day_bounds(day, tz)
        context = AvailabilityService.load_context(db, link, day_bounds.start, day_bounds.end)

        if day > local_date(now, tz) + timedelta(days=context.rules.booking_window_days):
            raise SlotOutsideAvailability(
                "Slot is beyond the booking window",
                {"requested": _interval_dict(requested), "reason": "booking_window"},
            )

        candidates = AvailabilityService.compute_slots(
            context, day_bounds.start, day_bounds.end, now, apply_bookings=False
        )
        if requested not in candidates:
            raise SlotOutsideAvailability(
                "Slot does not match the owner's availability",
                {"requested": _interval_dict(requested), "reason": "not_a_slot"},
            )

        conflict = AvailabilityService.find_conflict(context, requested)
        if conflict:
            raise SlotNoLongerAvailable(
                "Slot has already been booked",
                {"requested": _interval_dict(requested), "conflict": _interval_dict(conflict)},
            )

        limit = context.rules.max_bookings_per_day
        if limit > 0 and context.bookings_per_day.get(day, 0) >= limit:
            raise SlotNoLongerAvailable(
                "No more bookings are accepted for this day",
                {"requested": _interval_dict(requested), "reason": "max_bookings_per_day"},
            )

    @staticmethod
    def admit_booking(
            db: Session,
            link_id: UUID,
            start_time: datetime,
            end_time: datetime,
            invitee: Union[InviteeDetails, Dict[str, Any]],
            custom_answers: Optional[Dict[str, Any]] = None,
            now: Optional[datetime] = None
    ) -> Booking:
        """Validate and commit a booking, or raise a typed error"""
        now = ensure_utc(now or datetime.now(timezone.utc))
        link = AvailabilityService.get_active_link(db, link_id)

        details = AdmissionService.validate_invitee(invitee)
        answers = QuestionValidator.validate_answers(link.custom_questions, custom_answers)

        start, end = ensure_utc(start_time), ensure_utc(end_time)
        if end - start != timedelta(minutes=link.duration):
            raise SchedulingValidationError(
                "Booking duration does not match the link duration",
                {"expected_minutes": link.duration,
                 "received_minutes": (end - start).total_seconds() / 60},
            )
        requested = Interval(start, end)

        schedule = ScheduleService.resolve_schedule(db, link)
        tz = AvailabilityService.owner_timezone(schedule, link)
        day = local_date(start, tz)
        lock_days = AdmissionService.lock_days(requested, link, tz)

        settings = get_settings()
        keyed_lock = get_keyed_lock()

        try:
            with ExitStack() as stack:
                for lock_day in lock_days:
                    stack.enter_context(keyed_lock.hold(
                        RedisKeys.BOOKING_DAY_LOCK.format(owner_id=link.owner_id, day=lock_day.isoformat()),
                        settings.BOOKING_LOCK_TIMEOUT_SECONDS,
                    ))

                with transaction(db):
                    for lock_day in lock_days:
                        AdmissionService._lock_owner_day(db, link.owner_id, lock_day)

                    AdmissionService._check_slot(db, link, requested, day, tz, now)

                    booking = Booking(
                        booking_link_id=link.id,
                        owner_id=link.owner_id,
                        start_time=start,
                        end_time=end,
                        buffer_before=link.buffer_before or 0,
                        buffer_after=link.buffer_after or 0,
                        invitee_name=details.name,
                        invitee_email=str(details.email),
                        timezone=details.timezone,
                        custom_answers=answers,
                        status=BookingStatus.CONFIRMED.value,
                    )
                    db.add(booking)
                    db.flush()
        except LockTimeout as e:
            logger.warning(f"Admission lock contention for link {link.id}: {e}")
            raise SlotNoLongerAvailable(
                "Slot is being booked by someone else, please retry",
                {"requested": _interval_dict(requested), "reason": "lock_timeout"},
            ) from e
        except (SlotNoLongerAvailable, SlotOutsideAvailability) as e:
            logger.info(f"Rejected booking on link {link.id} at {start.isoformat()}: {e.kind}")
            raise

        db.refresh(booking)
        logger.info(f"Admitted booking {booking.id} on link {link.id} at {start.isoformat()}")
        return booking
