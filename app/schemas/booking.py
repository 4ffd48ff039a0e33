"""
Pydantic schemas for availability and booking requests
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.utils.time_intervals import ensure_utc, is_valid_timezone


# ============================================================================
# Request Schemas (for incoming data)
# ============================================================================

class InviteeDetails(BaseModel):
    """Who is booking"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    timezone: str = Field(default="UTC", max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v):
        if not is_valid_timezone(v):
            raise ValueError(f"Unknown timezone '{v}'")
        return v


class BookingCreateRequest(BaseModel):
    """Body of POST /public/booking-links/{link_id}/bookings"""
    start_time: datetime
    end_time: datetime
    timezone: str = Field(default="UTC", max_length=50)
    invitee_name: str = Field(..., max_length=200)
    invitee_email: str = Field(..., max_length=255)
    custom_answers: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def invitee(self) -> Dict[str, str]:
        return {
            "name": self.invitee_name,
            "email": self.invitee_email,
            "timezone": self.timezone,
        }


class AvailabilityQuery(BaseModel):
    """Civil date range in the viewer's zone, both ends inclusive"""
    start_date: date
    end_date: date
    timezone: str = "UTC"

    @model_validator(mode="after")
    def ordered(self):
        if self.end_date < self.start_date:
            raise ValueError(f"end_date ({self.end_date}) must be on or after start_date ({self.start_date})")
        if (self.end_date - self.start_date).days > 92:
            raise ValueError("Date range may span at most 92 days")
        return self


# ============================================================================
# Response Schemas
# ============================================================================

class SlotResponse(BaseModel):
    start: datetime  # UTC
    end: datetime  # UTC
    local_start: Optional[datetime] = None  # viewer zone, display only
    local_end: Optional[datetime] = None


class AvailabilityResponse(BaseModel):
    link_id: UUID
    timezone: str
    slots: List[SlotResponse]


class BookingResponse(BaseModel):
    id: UUID
    booking_link_id: UUID
    start_time: datetime
    end_time: datetime
    invitee_name: str
    invitee_email: str
    timezone: str
    status: str
    custom_answers: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, v):
        return ensure_utc(v)


class CustomQuestionResponse(BaseModel):
    id: UUID
    label: str
    type: str
    required: bool
    options: List[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class BookingLinkPublicResponse(BaseModel):
    id: UUID
    slug: str
    title: str
    description: Optional[str] = None
    duration: int
    owner_name: str
    booking_window_days: int
    custom_questions: List[CustomQuestionResponse]
