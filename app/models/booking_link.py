# app/models/booking_link.py
from sqlalchemy import (
    Column, String, Integer, Boolean, Text, JSON, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.models.base import Base
import uuid
import enum


class QuestionType(str, enum.Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    PHONE = "phone"
    DROPDOWN = "dropdown"
    RADIO = "radio"
    CHECKBOX = "checkbox"


class BookingLink(Base):
    __tablename__ = "booking_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Public identity, fixed once published
    slug = Column(String(100), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    duration = Column(Integer, nullable=False)  # minutes
    buffer_before = Column(Integer, nullable=False, default=0)
    buffer_after = Column(Integer, nullable=False, default=0)

    # NULL falls back to the owner's default schedule
    availability_schedule_id = Column(
        UUID(as_uuid=True),
        ForeignKey("availability_schedules.id", ondelete="RESTRICT"),
        nullable=True,
    )

    booking_window_days = Column(Integer, nullable=False, default=30)  # days in advance
    lead_time_minutes = Column(Integer, nullable=False, default=60)  # minimum notice
    max_bookings_per_day = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="booking_links")
    schedule = relationship("AvailabilitySchedule")
    custom_questions = relationship(
        "CustomQuestion",
        back_populates="booking_link",
        cascade="all, delete-orphan",
        order_by="CustomQuestion.order_index",
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "slug", name="uq_booking_links_owner_slug"),
        CheckConstraint("duration > 0", name="ck_booking_links_duration"),
        CheckConstraint("buffer_before >= 0 AND buffer_after >= 0", name="ck_booking_links_buffers"),
    )

    def __repr__(self):
        return f"<BookingLink(id={self.id}, slug={self.slug}, duration={self.duration})>"


class CustomQuestion(Base):
    """A question the invitee answers when booking through a link"""
    __tablename__ = "custom_questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_link_id = Column(
        UUID(as_uuid=True),
        ForeignKey("booking_links.id", ondelete="CASCADE"),
        nullable=False,
    )

    label = Column(String(500), nullable=False)
    type = Column(String(20), nullable=False, default=QuestionType.TEXT.value)
    required = Column(Boolean, nullable=False, default=False)
    options = Column(JSON, default=list)  # choices for dropdown / radio / checkbox
    order_index = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)

    booking_link = relationship("BookingLink", back_populates="custom_questions")
