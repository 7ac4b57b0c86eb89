"""
Queue error taxonomy.

Every failure the engine reports is a ``QueueError`` carrying a ``kind`` the
HTTP layer maps to a status code, a stable ``code`` and a readable message.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DEPENDENCY = "dependency"


class QueueError(Exception):
    """Base class for all queue engine errors."""

    kind: ErrorKind = ErrorKind.CONFLICT
    default_message = "Queue operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind.value, "code": self.code}


class ValidationError(QueueError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class NotFoundError(QueueError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class ConflictError(QueueError):
    kind = ErrorKind.CONFLICT
    default_message = "Conflicting queue state"


class DependencyError(QueueError):
    kind = ErrorKind.DEPENDENCY
    default_message = "Queue store unavailable"


class ClinicNotFound(NotFoundError):
    default_message = "Clinic not found"


class PatientNotFound(NotFoundError):
    default_message = "Patient not found"


class CheckInNotFound(NotFoundError):
    default_message = "Check-in not found"


class EmptyQueue(CheckInNotFound):
    default_message = "No patients in queue"


class ClinicInactive(ConflictError):
    default_message = "Clinic is not accepting check-ins"


class QueueFull(ConflictError):
    default_message = "Queue is full. Please try again later."


class InvalidTransition(ConflictError):
    default_message = "Status change not allowed"


class AlreadyClaimed(ConflictError):
    default_message = "Patient was already called by someone else"


class TransitionConflict(ConflictError):
    default_message = "Check-in changed concurrently, reload and retry"
