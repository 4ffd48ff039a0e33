"""
Custom booking questions as a closed tagged union.

Each question type carries its own payload shape (choice types need options)
and knows how to validate and normalize an invitee's answer.
"""
import re
from typing import Annotated, Any, List, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, field_validator

PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9\s().-]{5,19}$")


def _as_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Answer must be text")
    return value.strip()


class QuestionBase(BaseModel):
    id: UUID
    label: str = Field(..., min_length=1, max_length=500)
    required: bool = False
    enabled: bool = True
    order_index: int = 0

    def is_blank(self, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        if isinstance(value, (list, tuple)):
            return len(value) == 0
        return False


class TextQuestion(QuestionBase):
    type: Literal["text"]

    def validate_answer(self, value: Any) -> str:
        text = _as_text(value)
        if len(text) > 500:
            raise ValueError("Answer must be at most 500 characters")
        return text


class TextareaQuestion(QuestionBase):
    type: Literal["textarea"]

    def validate_answer(self, value: Any) -> str:
        text = _as_text(value)
        if len(text) > 5000:
            raise ValueError("Answer must be at most 5000 characters")
        return text


class PhoneQuestion(QuestionBase):
    type: Literal["phone"]

    def validate_answer(self, value: Any) -> str:
        text = _as_text(value)
        if not PHONE_PATTERN.match(text):
            raise ValueError("Enter a valid phone number")
        return text


class _SingleChoiceQuestion(QuestionBase):
    options: List[str] = Field(..., min_length=1)

    @field_validator("options")
    @classmethod
    def unique_options(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Options must be unique")
        return v

    def validate_answer(self, value: Any) -> str:
        text = _as_text(value)
        if text not in self.options:
            raise ValueError(f"Answer must be one of: {', '.join(self.options)}")
        return text


class DropdownQuestion(_SingleChoiceQuestion):
    type: Literal["dropdown"]


class RadioQuestion(_SingleChoiceQuestion):
    type: Literal["radio"]


class CheckboxQuestion(QuestionBase):
    """Without options this is a single consent box; with options, a multi-select."""
    type: Literal["checkbox"]
    options: List[str] = Field(default_factory=list)

    def is_blank(self, value: Any) -> bool:
        if not self.options and value is False:
            return True
        return super().is_blank(value)

    def validate_answer(self, value: Any):
        if not self.options:
            if not isinstance(value, bool):
                raise ValueError("Answer must be true or false")
            return value

        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("Answer must be a list of options")
        unknown = [v for v in value if v not in self.options]
        if unknown:
            raise ValueError(f"Unknown options: {', '.join(unknown)}")
        # keep the owner's option order, drop duplicates
        return [o for o in self.options if o in value]


CustomQuestionDefinition = Annotated[
    Union[
        TextQuestion,
        TextareaQuestion,
        PhoneQuestion,
        DropdownQuestion,
        RadioQuestion,
        CheckboxQuestion,
    ],
    Field(discriminator="type"),
]

question_adapter = TypeAdapter(CustomQuestionDefinition)
