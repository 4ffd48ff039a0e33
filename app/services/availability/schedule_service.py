# ============================================================================
# app/services/availability/schedule_service.py
# Weekly rules and date overrides - read side only
# ============================================================================
from datetime import date, time
from typing import Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from app.models.availability import AvailabilitySchedule, DateOverride
from app.models.booking_link import BookingLink

CivilWindow = Tuple[time, time]


def day_of_week(day: date) -> int:
    """Weekday index used by availability rules: 0=Sunday, 6=Saturday"""
    return (day.weekday() + 1) % 7


class ScheduleService:
    """Resolves which schedule applies and what civil hours a date has."""

    @staticmethod
    def get_default_schedule(db: Session, owner_id: UUID) -> Optional[AvailabilitySchedule]:
        return db.query(AvailabilitySchedule).options(
            selectinload(AvailabilitySchedule.rules)
        ).filter(
            AvailabilitySchedule.owner_id == owner_id,
            AvailabilitySchedule.is_default.is_(True)
        ).first()

    @staticmethod
    def resolve_schedule(db: Session, link: BookingLink) -> Optional[AvailabilitySchedule]:
        """The link's own schedule, else the owner's default"""
        if link.availability_schedule_id:
            schedule = db.query(AvailabilitySchedule).options(
                selectinload(AvailabilitySchedule.rules)
            ).filter(
                AvailabilitySchedule.id == link.availability_schedule_id,
                AvailabilitySchedule.owner_id == link.owner_id
            ).first()
            if schedule:
                return schedule

        return ScheduleService.get_default_schedule(db, link.owner_id)

    @staticmethod
    def weekly_windows(schedule: Optional[AvailabilitySchedule]) -> Dict[int, CivilWindow]:
        """Civil window per weekday, 0 = Sunday"""
        if not schedule:
            return {}
        windows = {}
        for day_of_week in range(7):
            rule = schedule.rule_for(day_of_week)
            if rule:
                windows[day_of_week] = (rule.start_time, rule.end_time)
        return windows

    @staticmethod
    def overrides_between(
            db: Session,
            owner_id: UUID,
            first_day: date,
            last_day: date
    ) -> Dict[date, Optional[CivilWindow]]:
        """Overrides keyed by date; None marks a day off."""
        overrides = db.query(DateOverride).filter(
            DateOverride.owner_id == owner_id,
            DateOverride.date >= first_day,
            DateOverride.date <= last_day
        ).all()

        return {o.date: ScheduleService.override_window(o) for o in overrides}

    @staticmethod
    def override_window(override: DateOverride) -> Optional[CivilWindow]:
        if not override.is_available or not override.start_time or not override.end_time:
            return None
        return override.start_time, override.end_time

    @staticmethod
    def civil_window(
            weekly: Dict[int, CivilWindow],
            overrides: Dict[date, Optional[CivilWindow]],
            day: date
    ) -> Optional[CivilWindow]:
        """An override for the date replaces the weekday rule entirely."""
        if day in overrides:
            return overrides[day]
        return weekly.get(day_of_week(day))
