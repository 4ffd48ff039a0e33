# app/models/poll.py
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.models.base import Base
import uuid
import enum


class PollStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class VoteChoice(str, enum.Enum):
    YES = "yes"
    NO = "no"
    IF_NEEDED = "if_needed"


class MeetingPoll(Base):
    __tablename__ = "meeting_polls"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    slug = Column(String(100), unique=True, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    timezone = Column(String(50), nullable=False, default="UTC")

    status = Column(String(20), nullable=False, default=PollStatus.OPEN.value)
    deadline = Column(DateTime(timezone=True), nullable=True)

    # Chosen by the owner afterwards; never computed from the votes
    selected_option_id = Column(UUID(as_uuid=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    options = relationship(
        "PollOption",
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="PollOption.start_time",
    )


class PollOption(Base):
    __tablename__ = "poll_options"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    poll_id = Column(UUID(as_uuid=True), ForeignKey("meeting_polls.id", ondelete="CASCADE"), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    poll = relationship("MeetingPoll", back_populates="options")
    votes = relationship("PollVote", back_populates="option", cascade="all, delete-orphan")


class PollVote(Base):
    """One voter's answer for one option; resubmitting replaces it"""
    __tablename__ = "poll_votes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    poll_id = Column(UUID(as_uuid=True), ForeignKey("meeting_polls.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(UUID(as_uuid=True), ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False)

    voter_name = Column(String(200), nullable=True)
    voter_email = Column(String(255), nullable=False)  # stored normalized
    vote = Column(String(20), nullable=False, default=VoteChoice.YES.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    option = relationship("PollOption", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("option_id", "voter_email", name="uq_poll_votes_option_voter"),
        Index("ix_poll_votes_poll", "poll_id"),
    )
