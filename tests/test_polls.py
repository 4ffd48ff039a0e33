import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.config.redis import RedisKeys
from app.config.settings import get_settings
from app.core.exceptions import NotFoundError, PollClosed, SchedulingValidationError, VoteInProgress
from app.models import PollVote
from app.services.poll.poll_service import PollService, aggregate_votes

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 6, 0, tzinfo=UTC)

MONDAY_TEN = datetime(2026, 3, 9, 10, 0, tzinfo=UTC)
TUESDAY_TEN = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


@pytest.fixture
def poll(make_poll):
    # created out of order; options are always reported by start time
    return make_poll([TUESDAY_TEN, MONDAY_TEN])


def option_at(poll, start):
    return next(o for o in poll.options if o.start_time.replace(tzinfo=UTC) == start)


class TestRecordVote:

    def test_resubmission_replaces_vote(self, db, poll):
        monday = option_at(poll, MONDAY_TEN)

        PollService.record_vote(db, monday.id, "Bob@Example.com ", "yes", voter_name="Bob", now=NOW)
        PollService.record_vote(db, monday.id, "bob@example.com", "no", voter_name="Bob", now=NOW)

        assert db.query(PollVote).count() == 1
        tally = PollService.tally(db, poll.id)
        monday_tally = tally.options[0]
        assert (monday_tally.yes_count, monday_tally.no_count) == (0, 1)
        assert monday_tally.voters == [{"name": "Bob", "email": "bob@example.com", "vote": "no"}]

    def test_unique_voters_across_options(self, db, poll):
        monday = option_at(poll, MONDAY_TEN)
        tuesday = option_at(poll, TUESDAY_TEN)

        PollService.record_vote(db, monday.id, "alice@example.com", "yes", now=NOW)
        PollService.record_vote(db, tuesday.id, "alice@example.com", "if_needed", now=NOW)
        PollService.record_vote(db, tuesday.id, "bob@example.com", "yes", now=NOW)

        assert PollService.unique_voters(db, poll.id) == 2
        assert PollService.tally(db, poll.id).unique_voters == 2

    def test_tally_is_ordered_by_start(self, db, poll):
        tally = PollService.tally(db, poll.id)
        assert [o.start_time for o in tally.options] == [MONDAY_TEN, TUESDAY_TEN]

    def test_invalid_vote_value(self, db, poll):
        with pytest.raises(SchedulingValidationError):
            PollService.record_vote(db, poll.options[0].id, "bob@example.com", "maybe", now=NOW)

    def test_invalid_email(self, db, poll):
        with pytest.raises(SchedulingValidationError):
            PollService.record_vote(db, poll.options[0].id, "bob", "yes", now=NOW)

    def test_unknown_option(self, db, poll):
        with pytest.raises(NotFoundError):
            PollService.record_vote(db, uuid.uuid4(), "bob@example.com", "yes", now=NOW)


class TestClosing:

    def test_closed_poll_rejects_votes(self, db, poll):
        PollService.close_poll(db, poll.id, now=NOW)

        with pytest.raises(PollClosed):
            PollService.record_vote(db, poll.options[0].id, "bob@example.com", "yes", now=NOW)

    def test_deadline(self, db, make_poll):
        poll = make_poll([MONDAY_TEN], deadline=NOW)
        option_id = poll.options[0].id

        with pytest.raises(PollClosed):
            PollService.record_vote(db, option_id, "bob@example.com", "yes", now=NOW)

        PollService.record_vote(db, option_id, "bob@example.com", "yes", now=NOW - timedelta(seconds=1))
        assert PollService.unique_voters(db, poll.id) == 1

    def test_close_from_another_session_is_seen(self, db, poll, session_factory):
        """The poll is re-read under the lock, so a stale open status does not let a vote in"""
        option_id = option_at(poll, MONDAY_TEN).id
        assert poll.status == "open"

        owner_session = session_factory()
        try:
            PollService.close_poll(owner_session, poll.id, now=NOW)
        finally:
            owner_session.close()

        with pytest.raises(PollClosed):
            PollService.record_vote(db, option_id, "bob@example.com", "yes", now=NOW)
        assert db.query(PollVote).count() == 0

    def test_close_is_idempotent(self, db, poll):
        first = PollService.close_poll(db, poll.id, now=NOW)
        second = PollService.close_poll(db, poll.id)
        assert first.status == second.status == "closed"


class TestBallots:

    def test_ballot_returns_fresh_tally(self, db, poll):
        monday = option_at(poll, MONDAY_TEN)
        tuesday = option_at(poll, TUESDAY_TEN)

        tally = PollService.submit_ballot(db, poll.id, "Alice", "alice@example.com", [
            {"option_id": monday.id, "vote": "yes"},
            {"option_id": tuesday.id, "vote": "no"},
        ], now=NOW)

        assert tally.unique_voters == 1
        assert [(o.yes_count, o.no_count) for o in tally.options] == [(1, 0), (0, 1)]

    def test_ballot_rejects_foreign_and_duplicate_options(self, db, poll, make_poll):
        other = make_poll([MONDAY_TEN])
        monday = option_at(poll, MONDAY_TEN)

        with pytest.raises(SchedulingValidationError) as exc:
            PollService.submit_ballot(db, poll.id, "Alice", "alice@example.com", [
                {"option_id": monday.id, "vote": "yes"},
                {"option_id": monday.id, "vote": "no"},
                {"option_id": other.options[0].id, "vote": "yes"},
            ], now=NOW)

        errors = exc.value.details["votes"]
        assert errors[str(monday.id)] == "Duplicate vote for option"
        assert errors[str(other.options[0].id)] == "Option does not belong to this poll"
        assert db.query(PollVote).count() == 0

    def test_resubmitted_ballot_replaces_the_old_one(self, db, poll):
        monday = option_at(poll, MONDAY_TEN)
        tuesday = option_at(poll, TUESDAY_TEN)
        PollService.record_vote(db, monday.id, "bob@example.com", "yes", now=NOW)

        PollService.submit_ballot(db, poll.id, "Alice", "alice@example.com", [
            {"option_id": monday.id, "vote": "yes"},
            {"option_id": tuesday.id, "vote": "yes"},
        ], now=NOW)
        tally = PollService.submit_ballot(db, poll.id, "Alice", "alice@example.com", [
            {"option_id": tuesday.id, "vote": "if_needed"},
        ], now=NOW)

        monday_tally, tuesday_tally = tally.options
        assert monday_tally.yes_count == 1
        assert [v["email"] for v in monday_tally.voters] == ["bob@example.com"]
        assert (tuesday_tally.yes_count, tuesday_tally.if_needed_count) == (0, 1)
        assert tally.unique_voters == 2

    def test_concurrent_submission_is_a_conflict(self, db, poll, keyed_lock, monkeypatch):
        option_id = option_at(poll, MONDAY_TEN).id
        monkeypatch.setattr(get_settings(), "BOOKING_LOCK_TIMEOUT_SECONDS", 0.05)
        key = RedisKeys.POLL_VOTE_LOCK.format(option_id=option_id, voter_email="bob@example.com")

        with keyed_lock.hold(key, timeout=1):
            with pytest.raises(VoteInProgress) as exc:
                PollService.record_vote(db, option_id, "Bob@example.com", "yes", now=NOW)

        assert exc.value.status_code == 409
        assert db.query(PollVote).count() == 0

    def test_empty_ballot(self, db, poll):
        with pytest.raises(SchedulingValidationError):
            PollService.submit_ballot(db, poll.id, "Alice", "alice@example.com", [], now=NOW)


class TestAggregation:

    def test_no_option_is_singled_out(self, poll):
        monday = option_at(poll, MONDAY_TEN)
        votes = [
            PollVote(option_id=monday.id, voter_email="a@example.com", voter_name="A", vote="yes"),
            PollVote(option_id=monday.id, voter_email="b@example.com", voter_name="B", vote="if_needed"),
            PollVote(option_id=uuid.uuid4(), voter_email="c@example.com", voter_name="C", vote="yes"),
        ]

        tallies = aggregate_votes(poll.options, votes)

        assert [(t.yes_count, t.no_count, t.if_needed_count) for t in tallies] == [(1, 0, 1), (0, 0, 0)]
        assert set(vars(tallies[0])) == {
            "option_id", "start_time", "end_time", "yes_count", "no_count", "if_needed_count", "voters",
        }
