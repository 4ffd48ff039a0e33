# ===== app/services/availability/availability_service.py =====
"""
Slot generation.

``load_context`` does the only database reads (rules, overrides, blocks and
bookings for the whole range at once); ``compute_slots`` is a pure function of
that context and an explicit ``now`` so the same inputs always give the same
slots.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterator, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config.settings import get_settings
from app.core.exceptions import NotFoundError
from app.models.booking import Booking, BookingStatus
from app.models.booking_link import BookingLink
from app.models.time_block import TimeBlock
from app.models.user import User
from app.services.availability.schedule_service import ScheduleService, CivilWindow
from app.services.availability.time_block_service import TimeBlockService
from app.utils.time_intervals import (
    Interval,
    civil_datetime_to_instant,
    civil_to_instant,
    ensure_utc,
    get_zone,
    intervals_overlap,
    iter_dates,
    local_date,
    subtract_intervals,
)
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotRules:
    """Link-level parameters that shape slots"""
    duration_minutes: int
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    booking_window_days: int = 30
    lead_time_minutes: int = 60
    max_bookings_per_day: int = 0

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    @property
    def step(self) -> timedelta:
        return timedelta(
            minutes=self.buffer_before_minutes + self.duration_minutes + self.buffer_after_minutes
        )

    @classmethod
    def from_link(cls, link: BookingLink) -> "SlotRules":
        return cls(
            duration_minutes=link.duration,
            buffer_before_minutes=link.buffer_before or 0,
            buffer_after_minutes=link.buffer_after or 0,
            booking_window_days=link.booking_window_days if link.booking_window_days is not None
            else get_settings().DEFAULT_BOOKING_WINDOW_DAYS,
            lead_time_minutes=link.lead_time_minutes or 0,
            max_bookings_per_day=link.max_bookings_per_day or 0,
        )


@dataclass
class AvailabilityContext:
    """Everything slot generation needs, fetched once per request"""
    timezone: str
    rules: SlotRules
    weekly: Dict[int, CivilWindow] = field(default_factory=dict)
    overrides: Dict[date, Optional[CivilWindow]] = field(default_factory=dict)
    blocks: List[TimeBlock] = field(default_factory=list)
    # busy[i] is occupied[i] widened by that booking's own buffers
    busy: List[Interval] = field(default_factory=list)
    occupied: List[Interval] = field(default_factory=list)
    bookings_per_day: Dict[date, int] = field(default_factory=dict)


def booking_busy_interval(booking: Booking) -> Interval:
    """A booking's interval widened by its own buffers"""
    return Interval(
        ensure_utc(booking.start_time) - timedelta(minutes=booking.buffer_before or 0),
        ensure_utc(booking.end_time) + timedelta(minutes=booking.buffer_after or 0),
    )


class AvailabilityService:
    """Composes rules, overrides, blocks and bookings into bookable slots"""

    @staticmethod
    def get_active_link(db: Session, link_id: UUID) -> BookingLink:
        link = db.query(BookingLink).filter(BookingLink.id == link_id).first()
        if not link or not link.is_active:
            raise NotFoundError("Booking link not found", {"link_id": str(link_id)})
        return link

    @staticmethod
    def get_public_link(db: Session, username: str, slug: str) -> BookingLink:
        """Resolve /{username}/{slug}; inactive links are hidden"""
        link = db.query(BookingLink).join(User, BookingLink.owner_id == User.id).filter(
            User.username == username.lower(),
            BookingLink.slug == slug,
            BookingLink.is_active.is_(True)
        ).first()
        if not link:
            raise NotFoundError("Booking link not found", {"username": username, "slug": slug})
        return link

    @staticmethod
    def owner_timezone(schedule, link: BookingLink) -> str:
        if schedule and schedule.timezone:
            return schedule.timezone
        if link.owner and link.owner.timezone:
            return link.owner.timezone
        return get_settings().DEFAULT_TIMEZONE

    @staticmethod
    def confirmed_bookings(
            db: Session,
            owner_id: UUID,
            window: Interval
    ) -> List[Booking]:
        """Confirmed bookings of the owner across all links that touch the window"""
        return db.query(Booking).filter(
            Booking.owner_id == owner_id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.start_time < window.end,
            Booking.end_time > window.start
        ).order_by(Booking.start_time.asc()).all()

    @staticmethod
    def load_context(
            db: Session,
            link: BookingLink,
            range_start: datetime,
            range_end: datetime,
            include_bookings: bool = True,
            external_busy: Optional[List[Interval]] = None
    ) -> AvailabilityContext:
        """Bulk-read every input for the range. No per-day queries."""
        schedule = ScheduleService.resolve_schedule(db, link)
        tz = AvailabilityService.owner_timezone(schedule, link)
        rules = SlotRules.from_link(link)

        # One day of slack on both sides covers zone offsets and overnight buffers
        first_day = local_date(range_start, tz) - timedelta(days=1)
        last_day = local_date(range_end, tz) + timedelta(days=1)

        context = AvailabilityContext(
            timezone=tz,
            rules=rules,
            weekly=ScheduleService.weekly_windows(schedule),
            overrides=ScheduleService.overrides_between(db, link.owner_id, first_day, last_day),
            blocks=TimeBlockService.list_for_owner(db, link.owner_id),
        )

        if include_bookings:
            pad = timedelta(days=1) + rules.duration
            bookings = AvailabilityService.confirmed_bookings(
                db, link.owner_id, Interval(range_start - pad, range_end + pad)
            )
            for b in bookings:
                context.busy.append(booking_busy_interval(b))
                context.occupied.append(Interval(ensure_utc(b.start_time), ensure_utc(b.end_time)))
                # the daily cap counts the owner's bookings on every link
                day = local_date(b.start_time, tz)
                context.bookings_per_day[day] = context.bookings_per_day.get(day, 0) + 1

        if external_busy:
            context.busy.extend(external_busy)
            context.occupied.extend(external_busy)

        if schedule is None:
            logger.warning(f"No availability schedule for owner {link.owner_id}; only overrides apply")

        return context

    # ------------------------------------------------------------------
    # Pure computation
    # ------------------------------------------------------------------

    @staticmethod
    def open_windows(context: AvailabilityContext, day: date) -> List[Interval]:
        """Instants still available on one owner-local date after time blocks"""
        civil = ScheduleService.civil_window(context.weekly, context.overrides, day)
        if not civil:
            return []

        start = civil_to_instant(day, civil[0], context.timezone)
        end = civil_to_instant(day, civil[1], context.timezone)
        if end <= start:
            return []

        cuts = []
        for cut_start, cut_end in TimeBlockService.cuts_for_day(context.blocks, day):
            s = civil_datetime_to_instant(cut_start, context.timezone)
            e = civil_datetime_to_instant(cut_end, context.timezone)
            if e > s:
                cuts.append(Interval(s, e))

        return subtract_intervals(Interval(start, end), cuts)

    @staticmethod
    def tile(window: Interval, rules: SlotRules) -> Iterator[Interval]:
        """Consecutive slots from the window start, separated by both buffers"""
        current = window.start
        while current + rules.duration <= window.end:
            yield Interval(current, current + rules.duration)
            current += rules.step

    @staticmethod
    def find_conflict(context: AvailabilityContext, slot: Interval) -> Optional[Interval]:
        """
        First booked interval the slot collides with, or None.

        Buffers apply on both sides: the slot may not touch an existing
        booking's buffer zone, and the slot's own buffers (from the link) may
        not touch an existing booking.
        """
        rules = context.rules
        padded = slot.widen(
            timedelta(minutes=rules.buffer_before_minutes),
            timedelta(minutes=rules.buffer_after_minutes),
        )
        for widened, booked in zip(context.busy, context.occupied):
            if intervals_overlap(slot, widened) or intervals_overlap(padded, booked):
                return booked
        return None

    @staticmethod
    def compute_slots(
            context: AvailabilityContext,
            range_start: datetime,
            range_end: datetime,
            now: datetime,
            apply_bookings: bool = True
    ) -> List[Interval]:
        """Bookable slots starting inside [range_start, range_end), ascending"""
        range_start, range_end, now = ensure_utc(range_start), ensure_utc(range_end), ensure_utc(now)
        if range_end <= range_start:
            return []

        tz = context.timezone
        rules = context.rules
        earliest = now + timedelta(minutes=rules.lead_time_minutes)
        today = local_date(now, tz)
        last_bookable_day = today + timedelta(days=rules.booking_window_days)

        first_day = max(local_date(range_start, tz), today)
        last_day = min(local_date(range_end, tz), last_bookable_day)

        slots = []
        for day in iter_dates(first_day, last_day):
            if (
                apply_bookings
                and rules.max_bookings_per_day > 0
                and context.bookings_per_day.get(day, 0) >= rules.max_bookings_per_day
            ):
                continue

            for window in AvailabilityService.open_windows(context, day):
                for slot in AvailabilityService.tile(window, rules):
                    if slot.start <= earliest:
                        continue
                    if not (range_start <= slot.start < range_end):
                        continue
                    if apply_bookings and AvailabilityService.find_conflict(context, slot):
                        continue
                    slots.append(slot)

        return sorted(slots)

    @staticmethod
    def generate_slots(
            db: Session,
            link_id: UUID,
            range_start: datetime,
            range_end: datetime,
            viewer_tz: str,
            now: datetime,
            external_busy: Optional[List[Interval]] = None
    ) -> List[Interval]:
        """
        Open slots for a booking link between two instants.

        viewer_tz is only validated here; projecting into it is a display
        concern of the caller.
        """
        get_zone(viewer_tz)
        link = AvailabilityService.get_active_link(db, link_id)
        range_start, range_end = ensure_utc(range_start), ensure_utc(range_end)

        context = AvailabilityService.load_context(
            db, link, range_start, range_end, external_busy=external_busy
        )
        slots = AvailabilityService.compute_slots(context, range_start, range_end, now)

        logger.info(
            f"Generated {len(slots)} slots for link {link.id} "
            f"between {range_start.isoformat()} and {range_end.isoformat()}"
        )
        return slots
