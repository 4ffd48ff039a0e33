# ============================================================================
# FILE: app/models/user.py
# Schedule owners. Authentication lives outside this service.
# ============================================================================
from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.models.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)

    # Public namespace for booking link slugs: /{username}/{slug}
    username = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(200), nullable=True)

    # Fallback zone when a schedule does not carry its own
    timezone = Column(String(50), default="UTC", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    schedules = relationship("AvailabilitySchedule", back_populates="owner")
    booking_links = relationship("BookingLink", back_populates="owner")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"
