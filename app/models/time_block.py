# app/models/time_block.py
from sqlalchemy import Column, String, Boolean, Text, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.models.base import Base
import uuid
import enum


class BlockType(str, enum.Enum):
    VACATION = "vacation"
    HOLIDAY = "holiday"
    PERSONAL = "personal"
    CUSTOM = "custom"


class Recurrence(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TimeBlock(Base):
    """
    Owner-authored blackout period, applied to every booking link of the owner.

    start_at/end_at are civil datetimes (no offset) in the owner's schedule zone.
    With all_day set, the block covers start_at.date() through end_at.date()
    inclusive and the clock parts are ignored. Recurring blocks repeat with the
    same span forever; there is no recurrence end.
    """
    __tablename__ = "time_blocks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(200), nullable=False)
    start_at = Column(DateTime(timezone=False), nullable=False)
    end_at = Column(DateTime(timezone=False), nullable=False)
    all_day = Column(Boolean, nullable=False, default=True)

    block_type = Column(String(20), nullable=False, default=BlockType.CUSTOM.value)
    recurrence = Column(String(20), nullable=False, default=Recurrence.NONE.value)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_at >= start_at", name="ck_time_blocks_range"),
        Index("ix_time_blocks_owner", "owner_id"),
    )
