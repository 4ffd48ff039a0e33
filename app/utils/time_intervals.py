# app/utils/time_intervals.py
"""
Civil time / instant conversion and half-open interval arithmetic.

Availability is authored as civil time (a wall-clock time in the owner's zone,
which must follow DST), while bookings are stored as UTC instants. Everything
that crosses between the two goes through ``civil_to_instant`` and
``project_to_zone``.

DST policy when a wall-clock time does not map to exactly one instant:
  * fold (the hour repeats): the earlier instant wins
  * gap (the hour is skipped): shift forward to the first valid instant,
    i.e. the transition itself (02:30 on a 02:00->03:00 jump becomes 03:00)
Pass ``strict=True`` to get ``AmbiguousOrInvalidCivilTime`` instead.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Iterable, List, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.exceptions import AmbiguousOrInvalidCivilTime

UTC = timezone.utc

ZoneLike = Union[str, tzinfo]


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open interval [start, end) between two aware instants."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Interval end {self.end} is before start {self.start}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "Interval") -> bool:
        return intervals_overlap(self, other)

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def widen(self, before: timedelta, after: timedelta) -> "Interval":
        return Interval(self.start - before, self.end + after)


# ============================================================================
# Zones
# ============================================================================

@lru_cache(maxsize=256)
def _load_zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def get_zone(tz: ZoneLike) -> tzinfo:
    """Resolve an IANA identifier (or pass a tzinfo through)."""
    if isinstance(tz, tzinfo):
        return tz
    if not tz:
        raise AmbiguousOrInvalidCivilTime("Timezone is required", {"timezone": tz})
    try:
        return _load_zone(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise AmbiguousOrInvalidCivilTime(
            f"Unknown timezone '{tz}'", {"timezone": tz}
        ) from e


def is_valid_timezone(tz_name: str) -> bool:
    try:
        get_zone(tz_name)
    except AmbiguousOrInvalidCivilTime:
        return False
    return True


def ensure_utc(instant: datetime) -> datetime:
    """Normalize to aware UTC. Naive values (as some drivers return them) are UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


# ============================================================================
# Civil <-> instant
# ============================================================================

def _wall(instant: datetime, zone: tzinfo) -> datetime:
    return instant.astimezone(zone).replace(tzinfo=None)


def _first_instant_at_or_after(naive: datetime, zone: tzinfo, lo: datetime, hi: datetime) -> datetime:
    # wall(lo) < naive <= wall(hi); bisect on whole seconds
    lo_s = int(lo.timestamp())
    hi_s = int(hi.timestamp())
    while hi_s - lo_s > 1:
        mid = (lo_s + hi_s) // 2
        if _wall(datetime.fromtimestamp(mid, UTC), zone) >= naive:
            hi_s = mid
        else:
            lo_s = mid
    return datetime.fromtimestamp(hi_s, UTC)


def civil_to_instant(day: date, clock: time, tz: ZoneLike, strict: bool = False) -> datetime:
    """Resolve a wall-clock date and time in ``tz`` to a UTC instant."""
    zone = get_zone(tz)
    naive = datetime.combine(day, clock.replace(tzinfo=None))

    earlier = naive.replace(tzinfo=zone, fold=0).astimezone(UTC)
    later = naive.replace(tzinfo=zone, fold=1).astimezone(UTC)

    if earlier == later:
        return earlier

    lo, hi = min(earlier, later), max(earlier, later)
    in_gap = _wall(lo, zone) != naive

    if strict:
        problem = "does not exist" if in_gap else "is ambiguous"
        raise AmbiguousOrInvalidCivilTime(
            f"{naive.isoformat()} {problem} in {getattr(zone, 'key', zone)}",
            {"civil_time": naive.isoformat(), "timezone": str(getattr(zone, "key", zone))},
        )

    if in_gap:
        return _first_instant_at_or_after(naive, zone, lo, hi)
    return lo


def civil_datetime_to_instant(value: datetime, tz: ZoneLike, strict: bool = False) -> datetime:
    return civil_to_instant(value.date(), value.time(), tz, strict=strict)


def project_to_zone(instant: datetime, tz: ZoneLike) -> datetime:
    """Aware local datetime for display. Never store the result."""
    return ensure_utc(instant).astimezone(get_zone(tz))


def local_date(instant: datetime, tz: ZoneLike) -> date:
    return project_to_zone(instant, tz).date()


def civil_day_bounds(day: date, tz: ZoneLike) -> Interval:
    """The instants covered by one civil date in ``tz``."""
    return Interval(
        civil_to_instant(day, time.min, tz),
        civil_to_instant(day + timedelta(days=1), time.min, tz),
    )


def iter_dates(first: date, last: date):
    """Every date from ``first`` to ``last`` inclusive."""
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


# ============================================================================
# Interval arithmetic
# ============================================================================

def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Half-open overlap; touching endpoints and empty intervals never overlap."""
    if a.is_empty or b.is_empty:
        return False
    return a.start < b.end and b.start < a.end


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and coalesce overlapping or touching intervals, dropping empty ones."""
    merged: List[Interval] = []
    for current in sorted(i for i in intervals if not i.is_empty):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def subtract_intervals(base: Interval, cuts: Iterable[Interval]) -> List[Interval]:
    """``base`` minus every cut, as sorted non-empty pieces."""
    if base.is_empty:
        return []

    pieces = [base]
    for cut in merge_intervals(cuts):
        remaining = []
        for piece in pieces:
            if not intervals_overlap(piece, cut):
                remaining.append(piece)
                continue
            if cut.start > piece.start:
                remaining.append(Interval(piece.start, cut.start))
            if cut.end < piece.end:
                remaining.append(Interval(cut.end, piece.end))
        pieces = remaining

    return [p for p in pieces if not p.is_empty]
