# app/models/booking.py
from sqlalchemy import (
    Column, String, Integer, Date, DateTime, JSON, ForeignKey,
    CheckConstraint, PrimaryKeyConstraint, Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.models.base import Base
import uuid
import enum


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Booking(Base):
    """
    A reserved interval on the owner's calendar.

    Created only through the admission service. owner_id and the buffers are
    copied from the link at admission time so the owner-wide conflict query
    needs no join and later link edits leave existing buffer zones alone.
    """
    __tablename__ = "bookings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_link_id = Column(
        UUID(as_uuid=True),
        ForeignKey("booking_links.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    buffer_before = Column(Integer, nullable=False, default=0)
    buffer_after = Column(Integer, nullable=False, default=0)

    # Invitee
    invitee_name = Column(String(200), nullable=False)
    invitee_email = Column(String(255), nullable=False)
    timezone = Column(String(50), nullable=False)  # invitee display zone
    custom_answers = Column(JSON, default=dict)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    booking_link = relationship("BookingLink")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_range"),
        Index("ix_bookings_owner_status_start", "owner_id", "status", "start_time"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, start={self.start_time}, status={self.status})>"


class BookingDayLock(Base):
    """
    One row per (owner, owner-local date) that has seen an admission.

    The admission transaction selects it FOR UPDATE, which is the database-side
    serialization point for every booking written on that owner-day.
    """
    __tablename__ = "booking_day_locks"

    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("owner_id", "day", name="pk_booking_day_locks"),
    )
