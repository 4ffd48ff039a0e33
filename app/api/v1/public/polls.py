# ============================================================================
# FILE: app/api/v1/public/polls.py
# Public meeting poll voting
# ============================================================================

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from app.config.database import get_db
from app.schemas.poll import BallotRequest, PollResponse, PollTallyResponse
from app.services.poll.poll_service import PollService
from app.utils.time_intervals import ensure_utc

router = APIRouter(tags=["public-polls"])


@router.post("/polls/{poll_id}/votes", response_model=PollTallyResponse)
def submit_votes(
    poll_id: UUID,
    payload: BallotRequest,
    db: Session = Depends(get_db)
):
    """Record (or replace) one voter's answers and return the updated tally"""
    tally = PollService.submit_ballot(
        db,
        poll_id,
        voter_name=payload.voter_name,
        voter_email=payload.voter_email,
        votes=[vote.model_dump() for vote in payload.votes],
    )
    return PollTallyResponse.model_validate(asdict(tally))


@router.get("/polls/{poll_id}", response_model=PollResponse)
def get_poll(
    poll_id: UUID,
    db: Session = Depends(get_db)
):
    poll = PollService.get_poll(db, poll_id)
    tally = PollService.tally(db, poll.id)

    return PollResponse(
        **asdict(tally),
        title=poll.title,
        description=poll.description,
        duration=poll.duration,
        timezone=poll.timezone,
        deadline=ensure_utc(poll.deadline) if poll.deadline else None,
        selected_option_id=poll.selected_option_id,
    )
