from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.core.exceptions import AmbiguousOrInvalidCivilTime, NotFoundError
from app.models import AvailabilityRule, AvailabilitySchedule, BookingLink, BookingStatus, DateOverride, TimeBlock
from app.services.availability.availability_service import AvailabilityService
from app.utils.time_intervals import Interval, civil_day_bounds, project_to_zone

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 6, 0, tzinfo=UTC)  # Monday


def at(hour, minute=0, day=2):
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


def slots_on(db, link, day, now=NOW, viewer_tz="UTC", tz="UTC"):
    bounds = civil_day_bounds(day, tz)
    return AvailabilityService.generate_slots(db, link.id, bounds.start, bounds.end, viewer_tz, now)


def starts(slots):
    return [s.start for s in slots]


class TestWeeklyRules:

    def test_full_working_day(self, db, link):
        slots = slots_on(db, link, date(2026, 3, 2))
        assert len(slots) == 16
        assert slots[0] == Interval(at(9), at(9, 30))
        assert slots[-1] == Interval(at(16, 30), at(17))
        working_hours = Interval(at(9), at(17))
        assert all(working_hours.contains(s) for s in slots)

    def test_no_rule_no_slots(self, db, link):
        assert slots_on(db, link, date(2026, 3, 8)) == []  # Sunday

    def test_buffers_space_slots(self, db, make_link, schedule):
        schedule.rule_for(1).end_time = time(11, 0)
        db.commit()
        link = make_link(duration=30, buffer_before=10, buffer_after=5)

        assert starts(slots_on(db, link, date(2026, 3, 2))) == [at(9), at(9, 45), at(10, 30)]

    def test_link_schedule_wins_over_default(self, db, owner, make_link, schedule):
        afternoons = AvailabilitySchedule(owner_id=owner.id, name="Afternoons", is_default=False, timezone="UTC")
        afternoons.rules.append(AvailabilityRule(day_of_week=1, start_time=time(14, 0), end_time=time(15, 0)))
        db.add(afternoons)
        db.commit()
        link = make_link(availability_schedule_id=afternoons.id)

        assert starts(slots_on(db, link, date(2026, 3, 2))) == [at(14), at(14, 30)]

    def test_owner_without_schedule_only_gets_overrides(self, db, owner, make_link):
        link = make_link()
        assert slots_on(db, link, date(2026, 3, 2)) == []

        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 2), is_available=True,
                            start_time=time(10, 0), end_time=time(11, 0)))
        db.commit()
        assert starts(slots_on(db, link, date(2026, 3, 2))) == [at(10), at(10, 30)]


class TestOverrides:
    """A date override replaces the weekday rule entirely"""

    def test_custom_hours_replace_rule(self, db, owner, link):
        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 3), is_available=True,
                            start_time=time(13, 0), end_time=time(14, 0)))
        db.commit()

        assert starts(slots_on(db, link, date(2026, 3, 3))) == [at(13, day=3), at(13, 30, day=3)]

    def test_day_off(self, db, owner, link):
        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 4), is_available=False, label="Holiday"))
        db.commit()

        assert slots_on(db, link, date(2026, 3, 4)) == []
        assert len(slots_on(db, link, date(2026, 3, 5))) == 16

    def test_override_opens_weekend(self, db, owner, link):
        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 7), is_available=True,
                            start_time=time(10, 0), end_time=time(11, 0)))
        db.commit()

        assert starts(slots_on(db, link, date(2026, 3, 7))) == [at(10, day=7), at(10, 30, day=7)]


class TestDaylightSaving:

    def test_rule_across_spring_forward(self, db, make_link, schedule):
        """Sunday 01:00-04:00 New York on 2026-03-08 is only two real hours long"""
        schedule.timezone = "America/New_York"
        schedule.rules.append(AvailabilityRule(day_of_week=0, start_time=time(1, 0), end_time=time(4, 0)))
        db.commit()
        link = make_link(duration=60)

        slots = slots_on(db, link, date(2026, 3, 8), viewer_tz="America/New_York", tz="America/New_York")

        assert starts(slots) == [at(6, day=8), at(7, day=8)]
        local = [project_to_zone(s.start, "America/New_York").time() for s in slots]
        assert local == [time(1, 0), time(3, 0)]

    def test_unknown_viewer_zone(self, db, link):
        with pytest.raises(AmbiguousOrInvalidCivilTime):
            slots_on(db, link, date(2026, 3, 2), viewer_tz="Nowhere/Land")


class TestConflicts:

    def test_bookings_block_every_link_of_the_owner(self, db, link, make_link, make_booking):
        other = make_link(slug="deep-dive")
        make_booking(other, at(10))

        slot_starts = starts(slots_on(db, link, date(2026, 3, 2)))
        assert at(10) not in slot_starts
        assert at(9, 30) in slot_starts
        assert at(10, 30) in slot_starts

    def test_canceled_booking_frees_slot(self, db, link, make_booking):
        make_booking(link, at(10), status=BookingStatus.CANCELED.value)
        assert at(10) in starts(slots_on(db, link, date(2026, 3, 2)))

    def test_booking_buffers_widen_conflict(self, db, link, make_booking):
        make_booking(link, at(10), buffer_after=15)

        slot_starts = starts(slots_on(db, link, date(2026, 3, 2)))
        assert at(10, 30) not in slot_starts
        assert at(11) in slot_starts

    def test_time_block_cuts_window(self, db, owner, link):
        db.add(TimeBlock(owner_id=owner.id, title="Lunch", start_at=datetime(2026, 3, 2, 12),
                         end_at=datetime(2026, 3, 2, 13), all_day=False, recurrence="none"))
        db.commit()

        slot_starts = starts(slots_on(db, link, date(2026, 3, 2)))
        assert at(11, 30) in slot_starts
        assert at(12) not in slot_starts
        assert at(12, 30) not in slot_starts
        assert at(13) in slot_starts

    def test_external_busy_intervals(self, db, link):
        bounds = civil_day_bounds(date(2026, 3, 2), "UTC")
        slots = AvailabilityService.generate_slots(
            db, link.id, bounds.start, bounds.end, "UTC", NOW,
            external_busy=[Interval(at(9), at(12))],
        )
        assert slots[0].start == at(12)

    def test_max_bookings_per_day(self, db, make_link, schedule, make_booking):
        link = make_link(max_bookings_per_day=1)
        make_booking(link, at(15))

        assert slots_on(db, link, date(2026, 3, 2)) == []
        assert len(slots_on(db, link, date(2026, 3, 3))) == 16

    def test_max_bookings_per_day_counts_every_link(self, db, make_link, schedule, make_booking):
        capped = make_link(max_bookings_per_day=1)
        make_booking(make_link(slug="deep-dive"), at(15))

        assert slots_on(db, capped, date(2026, 3, 2)) == []

    def test_own_buffers_keep_clear_of_existing_bookings(self, db, make_link, schedule, make_booking):
        plain = make_link(slug="plain")
        make_booking(plain, at(10, 30))
        buffered = make_link(slug="buffered", buffer_after=30)

        slot_starts = starts(slots_on(db, buffered, date(2026, 3, 2)))
        assert at(9) in slot_starts
        assert at(10) not in slot_starts
        assert at(11) in slot_starts


class TestOverridesAndBlocks:
    """Both an override and a time block on the same date"""

    def test_day_off_beats_partial_block(self, db, owner, link):
        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 4), is_available=False))
        db.add(TimeBlock(owner_id=owner.id, title="Dentist", start_at=datetime(2026, 3, 4, 10),
                         end_at=datetime(2026, 3, 4, 11), all_day=False, recurrence="none"))
        db.commit()

        assert slots_on(db, link, date(2026, 3, 4)) == []

    def test_block_cuts_custom_hours(self, db, owner, link):
        db.add(DateOverride(owner_id=owner.id, date=date(2026, 3, 3), is_available=True,
                            start_time=time(13, 0), end_time=time(15, 0)))
        db.add(TimeBlock(owner_id=owner.id, title="School run", start_at=datetime(2026, 3, 3, 13, 30),
                         end_at=datetime(2026, 3, 3, 14), all_day=False, recurrence="none"))
        db.commit()

        assert starts(slots_on(db, link, date(2026, 3, 3))) == [
            at(13, day=3), at(14, day=3), at(14, 30, day=3),
        ]


class TestBookingHorizon:

    def test_lead_time(self, db, make_link, schedule):
        link = make_link(lead_time_minutes=120)
        slots = slots_on(db, link, date(2026, 3, 2), now=at(8, 30))
        assert slots[0].start == at(11)

    def test_default_lead_time_is_an_hour(self, db, owner, schedule):
        link = BookingLink(owner_id=owner.id, slug="defaults", title="Defaults", duration=30)
        db.add(link)
        db.commit()

        assert link.lead_time_minutes == 60
        slots = slots_on(db, link, date(2026, 3, 2), now=at(8, 30))
        assert slots[0].start == at(10)

    def test_past_slots_are_dropped(self, db, link):
        slots = slots_on(db, link, date(2026, 3, 2), now=at(12, 10))
        assert slots[0].start == at(12, 30)

    def test_booking_window(self, db, make_link, schedule):
        link = make_link(booking_window_days=3)
        assert len(slots_on(db, link, date(2026, 3, 5))) == 16
        assert slots_on(db, link, date(2026, 3, 6)) == []

    def test_range_is_half_open(self, db, link):
        slots = AvailabilityService.generate_slots(db, link.id, at(10), at(11), "UTC", NOW)
        assert starts(slots) == [at(10), at(10, 30)]

    def test_inactive_link(self, db, make_link, schedule):
        link = make_link(is_active=False)
        with pytest.raises(NotFoundError):
            slots_on(db, link, date(2026, 3, 2))

    def test_multi_day_range_is_sorted(self, db, link):
        slots = AvailabilityService.generate_slots(db, link.id, at(0), at(0, day=7), "UTC", NOW)
        assert len(slots) == 16 * 5
        assert slots == sorted(slots)
        assert slots[0].start - NOW > timedelta(0)
