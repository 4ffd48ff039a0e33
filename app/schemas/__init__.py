# app/schemas/__init__.py
from .booking import (
    InviteeDetails,
    BookingCreateRequest,
    AvailabilityQuery,
    SlotResponse,
    AvailabilityResponse,
    BookingResponse,
    CustomQuestionResponse,
    BookingLinkPublicResponse
)

from .custom_questions import (
    TextQuestion,
    TextareaQuestion,
    PhoneQuestion,
    DropdownQuestion,
    RadioQuestion,
    CheckboxQuestion,
    CustomQuestionDefinition,
    question_adapter
)

from .poll import (
    VoterDetails,
    VoteIn,
    BallotRequest,
    VoterOut,
    OptionTallyResponse,
    PollTallyResponse,
    PollResponse
)
