# ===== app/models/availability.py =====
from sqlalchemy import (
    Column, String, Integer, Boolean, Time, Date, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.models.base import Base
import uuid


class AvailabilitySchedule(Base):
    """A named set of weekly rules. Each owner has at most one default."""
    __tablename__ = "availability_schedules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(100), nullable=False, default="Working hours")
    is_default = Column(Boolean, nullable=False, default=False)
    timezone = Column(String(50), nullable=False, default="UTC")  # rules are civil time in this zone

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="schedules")
    rules = relationship(
        "AvailabilityRule",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="AvailabilityRule.day_of_week",
    )

    __table_args__ = (
        Index(
            "uq_availability_schedules_owner_default",
            "owner_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    def rule_for(self, day_of_week: int):
        return next((r for r in self.rules if r.day_of_week == day_of_week), None)

    def __repr__(self):
        return f"<AvailabilitySchedule(id={self.id}, name={self.name}, default={self.is_default})>"


class AvailabilityRule(Base):
    """One contiguous weekly range per weekday"""
    __tablename__ = "availability_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    schedule_id = Column(
        UUID(as_uuid=True),
        ForeignKey("availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    schedule = relationship("AvailabilitySchedule", back_populates="rules")

    __table_args__ = (
        UniqueConstraint("schedule_id", "day_of_week", name="uq_availability_rules_schedule_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_rules_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_rules_range"),
    )


class DateOverride(Base):
    """Specific date exceptions (day off, or custom hours) for every link of an owner"""
    __tablename__ = "date_overrides"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False, default=False)  # False = day off
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    label = Column(String(200), nullable=True)  # "Holiday", "Conference", etc.

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("owner_id", "date", name="uq_date_overrides_owner_date"),
        CheckConstraint(
            "is_available = false OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="ck_date_overrides_hours",
        ),
    )
