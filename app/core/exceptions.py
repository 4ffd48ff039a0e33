# app/core/exceptions.py
"""
Typed scheduling errors.

Services raise these; ``register_exception_handlers`` turns them into a JSON body
of the form ``{"error": {"kind", "message", "details"}}`` so clients can branch
on ``kind`` without parsing messages.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base class for every expected, per-request failure of the engine."""

    kind = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class SchedulingValidationError(SchedulingError):
    """Malformed input or a missing required field. Never retried."""

    kind = "validation_error"
    status_code = 422


class SlotNoLongerAvailable(SchedulingError):
    """Another booking took the slot between listing and submitting."""

    kind = "slot_no_longer_available"
    status_code = 409


class SlotOutsideAvailability(SchedulingError):
    """The slot does not match the owner's current availability."""

    kind = "slot_outside_availability"
    status_code = 409


class AmbiguousOrInvalidCivilTime(SchedulingError):
    """A civil time that cannot be resolved to one instant in its zone."""

    kind = "ambiguous_or_invalid_civil_time"
    status_code = 422


class PollClosed(SchedulingError):
    kind = "poll_closed"
    status_code = 409


class VoteInProgress(SchedulingError):
    """The same voter's previous submission still holds the vote lock. Retry."""

    kind = "vote_in_progress"
    status_code = 409


class NotFoundError(SchedulingError):
    kind = "not_found"
    status_code = 404


async def scheduling_error_handler(request: Request, exc: SchedulingError):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.info(
        f"{exc.kind} on {request.method} {request.url.path}: {exc.message}",
        extra={"correlation_id": correlation_id, "kind": exc.kind},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render FastAPI's body/query validation failures in the same error shape"""
    fields = {
        ".".join(str(p) for p in err["loc"]): err["msg"]
        for err in exc.errors()
    }
    error = SchedulingValidationError("Request validation failed", {"fields": fields})
    return await scheduling_error_handler(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handler for the whole SchedulingError tree"""
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
