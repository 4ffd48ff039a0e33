# ============================================================================
# app/services/availability/time_block_service.py
# ============================================================================
"""Reading and lazily expanding owner time blocks"""
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Tuple
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.models.time_block import TimeBlock, Recurrence

CivilSpan = Tuple[datetime, datetime]

# Upper bound of one recurrence unit, used to skip occurrences that end
# before the queried window without enumerating them.
_MAX_UNIT_DAYS = {
    Recurrence.DAILY.value: 1,
    Recurrence.WEEKLY.value: 7,
    Recurrence.MONTHLY.value: 31,
    Recurrence.YEARLY.value: 366,
}


def _step(recurrence: str, k: int) -> relativedelta:
    if recurrence == Recurrence.DAILY.value:
        return relativedelta(days=k)
    if recurrence == Recurrence.WEEKLY.value:
        return relativedelta(weeks=k)
    if recurrence == Recurrence.MONTHLY.value:
        return relativedelta(months=k)
    if recurrence == Recurrence.YEARLY.value:
        return relativedelta(years=k)
    raise ValueError(f"Unknown recurrence '{recurrence}'")


def base_span(block: TimeBlock) -> CivilSpan:
    """The first occurrence as civil [start, end)"""
    if block.all_day:
        return (
            datetime.combine(block.start_at.date(), time.min),
            datetime.combine(block.end_at.date() + timedelta(days=1), time.min),
        )
    return block.start_at, block.end_at


class TimeBlockService:
    """Recurring blocks have no end, so they are never materialized in full."""

    @staticmethod
    def list_for_owner(db: Session, owner_id: UUID) -> List[TimeBlock]:
        return db.query(TimeBlock).filter(TimeBlock.owner_id == owner_id).all()

    @staticmethod
    def occurrences_between(
            block: TimeBlock,
            window_start: datetime,
            window_end: datetime
    ) -> Iterator[CivilSpan]:
        """Yield each occurrence that intersects the civil window [window_start, window_end)."""
        start, end = base_span(block)
        span = end - start
        recurrence = block.recurrence or Recurrence.NONE.value

        if recurrence == Recurrence.NONE.value:
            if start < window_end and end > window_start:
                yield start, end
            return

        unit = timedelta(days=_MAX_UNIT_DAYS[recurrence])
        k = max(0, (window_start - start - span) // unit)

        while True:
            occ_start = start + _step(recurrence, k)
            if occ_start >= window_end:
                return
            occ_end = occ_start + span
            if occ_end > window_start:
                yield occ_start, occ_end
            k += 1

    @staticmethod
    def cuts_for_day(blocks: List[TimeBlock], day: date) -> List[CivilSpan]:
        """Blocked civil ranges on one date, clipped to that date."""
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)

        cuts = []
        for block in blocks:
            for occ_start, occ_end in TimeBlockService.occurrences_between(block, day_start, day_end):
                clipped = (max(occ_start, day_start), min(occ_end, day_end))
                if clipped[0] < clipped[1]:
                    cuts.append(clipped)
        return sorted(cuts)

    @staticmethod
    def is_blocked_on(block: TimeBlock, day: date) -> bool:
        """True when any occurrence of the block touches the given date."""
        day_start = datetime.combine(day, time.min)
        return next(
            TimeBlockService.occurrences_between(block, day_start, day_start + timedelta(days=1)),
            None,
        ) is not None
