"""
Pydantic schemas for meeting poll voting
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.poll import VoteChoice
from app.utils.time_intervals import ensure_utc


class VoterDetails(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class VoteIn(BaseModel):
    option_id: UUID
    vote: VoteChoice = VoteChoice.YES


class BallotRequest(BaseModel):
    """Body of POST /public/polls/{poll_id}/votes"""
    voter_name: str = Field(..., min_length=1, max_length=200)
    voter_email: str = Field(..., max_length=255)
    votes: List[VoteIn] = Field(..., min_length=1)


class VoterOut(BaseModel):
    name: Optional[str] = None
    email: str
    vote: VoteChoice


class OptionTallyResponse(BaseModel):
    option_id: UUID
    start_time: datetime
    end_time: datetime
    yes_count: int
    no_count: int
    if_needed_count: int
    voters: List[VoterOut]

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, v):
        return ensure_utc(v)


class PollTallyResponse(BaseModel):
    poll_id: UUID
    status: str
    unique_voters: int
    options: List[OptionTallyResponse]


class PollResponse(PollTallyResponse):
    title: str
    description: Optional[str] = None
    duration: int
    timezone: str
    deadline: Optional[datetime] = None
    selected_option_id: Optional[UUID] = None
