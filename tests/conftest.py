"""
Shared fixtures: a fresh file-backed SQLite database per test, a seeded owner
with a Monday-Friday 09:00-17:00 UTC schedule, and factories for links,
bookings and polls.
"""
import os

# Must be set before app.config.database builds its module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BOOKING_LOCK_BACKEND", "local")

import uuid
from datetime import datetime, time, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.config.database import build_engine, create_tables, get_db
from app.models import (
    AvailabilityRule,
    AvailabilitySchedule,
    Booking,
    BookingLink,
    BookingStatus,
    MeetingPoll,
    PollOption,
    User,
)
from app.services.booking.locks import LocalKeyedLock, set_keyed_lock

UTC = timezone.utc

# Monday 2026-03-02, before working hours
NOW = datetime(2026, 3, 2, 6, 0, tzinfo=UTC)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def keyed_lock():
    """A private in-process lock registry per test"""
    lock = LocalKeyedLock()
    set_keyed_lock(lock)
    yield lock
    set_keyed_lock(None)


@pytest.fixture
def owner(db):
    user = User(
        email="ada@example.com",
        username="ada",
        display_name="Ada Lovelace",
        timezone="UTC",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def schedule(db, owner):
    """Default schedule: Monday (1) to Friday (5), 09:00-17:00 UTC"""
    schedule = AvailabilitySchedule(
        owner_id=owner.id,
        name="Working hours",
        is_default=True,
        timezone="UTC",
    )
    for dow in range(1, 6):
        schedule.rules.append(AvailabilityRule(day_of_week=dow, start_time=time(9, 0), end_time=time(17, 0)))
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


@pytest.fixture
def make_link(db, owner):
    def _make(**overrides) -> BookingLink:
        values = {
            "owner_id": owner.id,
            "slug": f"intro-{uuid.uuid4().hex[:8]}",
            "title": "Intro call",
            "duration": 30,
            "buffer_before": 0,
            "buffer_after": 0,
            "booking_window_days": 60,
            "lead_time_minutes": 0,
            "max_bookings_per_day": 0,
            "is_active": True,
        }
        values.update(overrides)
        link = BookingLink(**values)
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    return _make


@pytest.fixture
def link(make_link, schedule):
    return make_link(slug="intro")


@pytest.fixture
def make_booking(db):
    def _make(link: BookingLink, start: datetime, minutes: int = None, **overrides) -> Booking:
        values = {
            "booking_link_id": link.id,
            "owner_id": link.owner_id,
            "start_time": start,
            "end_time": start + timedelta(minutes=minutes or link.duration),
            "buffer_before": link.buffer_before,
            "buffer_after": link.buffer_after,
            "invitee_name": "Grace Hopper",
            "invitee_email": "grace@example.com",
            "timezone": "UTC",
            "custom_answers": {},
            "status": BookingStatus.CONFIRMED.value,
        }
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def make_poll(db, owner):
    def _make(starts, **overrides) -> MeetingPoll:
        values = {
            "owner_id": owner.id,
            "slug": f"poll-{uuid.uuid4().hex[:8]}",
            "title": "Quarterly planning",
            "duration": 60,
            "timezone": "UTC",
            "status": "open",
        }
        values.update(overrides)
        poll = MeetingPoll(**values)
        for start in starts:
            poll.options.append(PollOption(start_time=start, end_time=start + timedelta(minutes=values["duration"])))
        db.add(poll)
        db.commit()
        db.refresh(poll)
        return poll

    return _make


@pytest.fixture
def client(session_factory):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
