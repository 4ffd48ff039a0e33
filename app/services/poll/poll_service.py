# ============================================================================
# app/services/poll/poll_service.py
# Vote upserts and per-option tallies for meeting polls
# ============================================================================
"""
Poll consensus.

A vote is keyed by (option, voter email); resubmitting replaces the previous
answer. Tallies are recomputed from the vote rows on every read and no option
is ever ranked or auto-selected.
"""
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.database import transaction
from app.config.redis import RedisKeys
from app.config.settings import get_settings
from app.core.exceptions import NotFoundError, PollClosed, SchedulingValidationError, VoteInProgress
from app.models.poll import MeetingPoll, PollOption, PollVote, PollStatus, VoteChoice
from app.schemas.poll import VoterDetails
from app.services.booking.locks import LockTimeout, get_keyed_lock
from app.utils.time_intervals import ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class OptionTally:
    option_id: UUID
    start_time: datetime
    end_time: datetime
    yes_count: int = 0
    no_count: int = 0
    if_needed_count: int = 0
    voters: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PollTally:
    poll_id: UUID
    status: str
    unique_voters: int
    options: List[OptionTally]


def aggregate_votes(options: Iterable[PollOption], votes: Iterable[PollVote]) -> List[OptionTally]:
    """Pure per-option counts, in option start order"""
    tallies = {
        option.id: OptionTally(
            option_id=option.id,
            start_time=ensure_utc(option.start_time),
            end_time=ensure_utc(option.end_time),
        )
        for option in options
    }

    for vote in votes:
        tally = tallies.get(vote.option_id)
        if tally is None:
            continue
        if vote.vote == VoteChoice.YES.value:
            tally.yes_count += 1
        elif vote.vote == VoteChoice.NO.value:
            tally.no_count += 1
        elif vote.vote == VoteChoice.IF_NEEDED.value:
            tally.if_needed_count += 1
        tally.voters.append({"name": vote.voter_name, "email": vote.voter_email, "vote": vote.vote})

    for tally in tallies.values():
        tally.voters.sort(key=lambda v: v["email"])

    return sorted(tallies.values(), key=lambda t: (t.start_time, str(t.option_id)))


class PollService:
    """Handles meeting poll voting"""

    @staticmethod
    def get_poll(db: Session, poll_id: UUID) -> MeetingPoll:
        poll = db.query(MeetingPoll).filter(MeetingPoll.id == poll_id).first()
        if not poll:
            raise NotFoundError("Meeting poll not found", {"poll_id": str(poll_id)})
        return poll

    @staticmethod
    def ensure_open(poll: MeetingPoll, now: datetime) -> None:
        if poll.status != PollStatus.OPEN.value:
            raise PollClosed("This poll is no longer accepting votes", {"poll_id": str(poll.id)})
        if poll.deadline and ensure_utc(poll.deadline) <= ensure_utc(now):
            raise PollClosed(
                "Voting deadline has passed",
                {"poll_id": str(poll.id), "deadline": ensure_utc(poll.deadline).isoformat()},
            )

    @staticmethod
    def _voter(voter_email: str, voter_name: Optional[str]) -> VoterDetails:
        try:
            return VoterDetails(name=voter_name, email=voter_email)
        except ValidationError as e:
            raise SchedulingValidationError(
                "Invalid voter details",
                {"fields": {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}},
            ) from e

    @staticmethod
    def _choice(vote: Any) -> VoteChoice:
        try:
            return VoteChoice(vote)
        except ValueError as e:
            raise SchedulingValidationError(
                f"Invalid vote '{vote}'",
                {"allowed": [c.value for c in VoteChoice]},
            ) from e

    @staticmethod
    def _upsert(db: Session, poll_id: UUID, option_id: UUID, voter: VoterDetails, choice: VoteChoice) -> PollVote:
        """Insert or replace one vote; the unique constraint makes this idempotent."""
        now = datetime.now(timezone.utc)
        dialect = db.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert
            stmt = insert(PollVote).values(
                poll_id=poll_id,
                option_id=option_id,
                voter_email=voter.email,
                voter_name=voter.name,
                vote=choice.value,
                updated_at=now,
            )
            db.execute(stmt.on_conflict_do_update(
                index_elements=["option_id", "voter_email"],
                set_={"vote": choice.value, "voter_name": voter.name, "updated_at": now},
            ))
        else:
            existing = db.query(PollVote).filter(
                PollVote.option_id == option_id,
                PollVote.voter_email == voter.email
            ).first()
            if not existing:
                try:
                    with db.begin_nested():
                        db.add(PollVote(
                            poll_id=poll_id,
                            option_id=option_id,
                            voter_email=voter.email,
                            voter_name=voter.name,
                            vote=choice.value,
                        ))
                except IntegrityError:
                    # another process inserted the same (option, voter) first
                    logger.info(f"Vote insert raced for {voter.email} on option {option_id}, updating")
                    existing = db.query(PollVote).filter(
                        PollVote.option_id == option_id,
                        PollVote.voter_email == voter.email
                    ).one()
            if existing:
                existing.vote = choice.value
                existing.voter_name = voter.name
                existing.updated_at = now
            db.flush()

        return db.query(PollVote).filter(
            PollVote.option_id == option_id,
            PollVote.voter_email == voter.email
        ).populate_existing().one()

    @staticmethod
    def _write_votes(
            db: Session,
            poll: MeetingPoll,
            voter: VoterDetails,
            choices: Dict[UUID, VoteChoice],
            now: datetime,
            replace_ballot: bool = False
    ) -> List[PollVote]:
        """
        Upsert the voter's choices under the vote locks.

        With replace_ballot the voter's votes on options missing from
        ``choices`` are deleted, so a resubmitted ballot replaces the old one.
        The poll is re-read inside the transaction so a close that lands while
        we wait for the locks still rejects the vote.
        """
        keyed_lock = get_keyed_lock()
        timeout = get_settings().BOOKING_LOCK_TIMEOUT_SECONDS
        locked_options = [option.id for option in poll.options] if replace_ballot else list(choices)
        keys = sorted(
            RedisKeys.POLL_VOTE_LOCK.format(option_id=option_id, voter_email=voter.email)
            for option_id in locked_options
        )

        try:
            with ExitStack() as stack:
                for key in keys:
                    stack.enter_context(keyed_lock.hold(key, timeout))
                with transaction(db):
                    current = db.query(MeetingPoll).filter(
                        MeetingPoll.id == poll.id
                    ).populate_existing().with_for_update().one()
                    PollService.ensure_open(current, now)

                    if replace_ballot:
                        dropped = db.query(PollVote).filter(
                            PollVote.poll_id == poll.id,
                            PollVote.voter_email == voter.email,
                            PollVote.option_id.notin_(list(choices))
                        ).delete(synchronize_session=False)
                        if dropped:
                            logger.info(f"Removed {dropped} earlier votes from {voter.email} on poll {poll.id}")

                    return [
                        PollService._upsert(db, poll.id, option_id, voter, choice)
                        for option_id, choice in choices.items()
                    ]
        except LockTimeout as e:
            # a concurrent resubmission by the same voter is still writing
            raise VoteInProgress(
                "Vote is already being recorded, please retry",
                {"poll_id": str(poll.id), "voter_email": voter.email},
            ) from e

    @staticmethod
    def record_vote(
            db: Session,
            option_id: UUID,
            voter_email: str,
            vote: Any,
            voter_name: Optional[str] = None,
            now: Optional[datetime] = None
    ) -> PollVote:
        """Idempotent upsert of one voter's answer for one option"""
        now = ensure_utc(now or datetime.now(timezone.utc))
        voter = PollService._voter(voter_email, voter_name)
        choice = PollService._choice(vote)

        option = db.query(PollOption).filter(PollOption.id == option_id).first()
        if not option:
            raise NotFoundError("Poll option not found", {"option_id": str(option_id)})

        poll = option.poll
        PollService.ensure_open(poll, now)

        (saved,) = PollService._write_votes(db, poll, voter, {option.id: choice}, now)
        logger.info(f"Recorded {choice.value} from {voter.email} on option {option.id}")
        return saved

    @staticmethod
    def submit_ballot(
            db: Session,
            poll_id: UUID,
            voter_name: str,
            voter_email: str,
            votes: List[Dict[str, Any]],
            now: Optional[datetime] = None
    ) -> PollTally:
        """Replace one voter's ballot for the poll and return the fresh tally"""
        now = ensure_utc(now or datetime.now(timezone.utc))
        poll = PollService.get_poll(db, poll_id)
        PollService.ensure_open(poll, now)

        voter = PollService._voter(voter_email, voter_name)
        if not votes:
            raise SchedulingValidationError("At least one vote is required")

        option_ids = {option.id for option in poll.options}
        choices: Dict[UUID, VoteChoice] = {}
        errors: Dict[str, str] = {}

        for entry in votes:
            raw_id = entry.get("option_id")
            try:
                option_id = raw_id if isinstance(raw_id, UUID) else UUID(str(raw_id))
            except ValueError:
                errors[str(raw_id)] = "Invalid option id"
                continue
            if option_id not in option_ids:
                errors[str(option_id)] = "Option does not belong to this poll"
                continue
            if option_id in choices:
                errors[str(option_id)] = "Duplicate vote for option"
                continue
            try:
                choices[option_id] = PollService._choice(entry.get("vote", VoteChoice.YES.value))
            except SchedulingValidationError as e:
                errors[str(option_id)] = e.message

        if errors:
            raise SchedulingValidationError("Invalid ballot", {"votes": errors})

        PollService._write_votes(db, poll, voter, choices, now, replace_ballot=True)
        logger.info(f"Recorded ballot from {voter.email} on poll {poll.id} ({len(choices)} options)")
        return PollService.tally(db, poll.id)

    @staticmethod
    def tally(db: Session, poll_id: UUID) -> PollTally:
        """Per-option counts, recomputed from the vote rows"""
        poll = PollService.get_poll(db, poll_id)
        votes = db.query(PollVote).filter(PollVote.poll_id == poll.id).all()

        return PollTally(
            poll_id=poll.id,
            status=poll.status,
            unique_voters=len({v.voter_email for v in votes}),
            options=aggregate_votes(poll.options, votes),
        )

    @staticmethod
    def unique_voters(db: Session, poll_id: UUID) -> int:
        """Distinct voters across every option of the poll"""
        return db.query(func.count(func.distinct(PollVote.voter_email))).filter(
            PollVote.poll_id == poll_id
        ).scalar() or 0

    @staticmethod
    def close_poll(db: Session, poll_id: UUID, now: Optional[datetime] = None) -> MeetingPoll:
        """Owner action; later votes fail with PollClosed"""
        poll = PollService.get_poll(db, poll_id)
        if poll.status == PollStatus.CLOSED.value:
            return poll

        poll.status = PollStatus.CLOSED.value
        poll.closed_at = now or datetime.now(timezone.utc)
        db.commit()
        db.refresh(poll)
        logger.info(f"Closed poll {poll.id}")
        return poll
