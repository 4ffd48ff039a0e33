# app/models/__init__.py
from .base import Base
from .user import User
from .availability import AvailabilitySchedule, AvailabilityRule, DateOverride
from .time_block import TimeBlock, BlockType, Recurrence
from .booking_link import BookingLink, CustomQuestion, QuestionType
from .booking import Booking, BookingStatus, BookingDayLock
from .poll import MeetingPoll, PollOption, PollVote, PollStatus, VoteChoice

__all__ = [
    "Base",
    "User",
    "AvailabilitySchedule",
    "AvailabilityRule",
    "DateOverride",
    "TimeBlock",
    "BlockType",
    "Recurrence",
    "BookingLink",
    "CustomQuestion",
    "QuestionType",
    "Booking",
    "BookingStatus",
    "BookingDayLock",
    "MeetingPoll",
    "PollOption",
    "PollVote",
    "PollStatus",
    "VoteChoice",
]
