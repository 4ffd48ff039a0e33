# ============================================================================
# app/services/booking/question_validator.py
# ============================================================================
"""Checks invitee answers against a link's custom questions before admission"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app.core.exceptions import SchedulingValidationError
from app.models.booking_link import CustomQuestion
from app.schemas.custom_questions import question_adapter

logger = logging.getLogger(__name__)


class QuestionValidator:

    @staticmethod
    def definition_for(question: CustomQuestion):
        """Turn a stored row into its typed definition"""
        try:
            return question_adapter.validate_python({
                "id": question.id,
                "label": question.label,
                "type": question.type,
                "required": bool(question.required),
                "enabled": question.enabled is not False,
                "order_index": question.order_index or 0,
                "options": question.options or [],
            })
        except ValidationError as e:
            logger.error(f"Stored custom question {question.id} is malformed: {e}")
            raise SchedulingValidationError(
                "Booking link has a malformed custom question",
                {"question_id": str(question.id)},
            ) from e

    @staticmethod
    def validate_answers(
            questions: List[CustomQuestion],
            answers: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Validate answers keyed by question id.

        Returns the normalized answers for enabled questions. Raises
        SchedulingValidationError listing every problem at once.
        """
        answers = answers or {}
        enabled = [q for q in questions if q.enabled is not False]
        known_ids = {str(q.id) for q in enabled}

        errors: Dict[str, str] = {}
        normalized: Dict[str, Any] = {}

        for key in answers:
            if key not in known_ids:
                errors[key] = "Unknown question"

        for question in sorted(enabled, key=lambda q: q.order_index or 0):
            definition = QuestionValidator.definition_for(question)
            key = str(question.id)
            raw = answers.get(key)

            if definition.is_blank(raw):
                if definition.required:
                    errors[key] = "This question is required"
                continue

            try:
                normalized[key] = definition.validate_answer(raw)
            except ValueError as e:
                errors[key] = str(e)

        if errors:
            raise SchedulingValidationError(
                "Invalid answers to custom questions",
                {"answers": errors},
            )

        return normalized
