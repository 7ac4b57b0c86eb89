"""Queue ordering and state-transition engine."""

from .engine import QueueEngine
from .errors import (
    QueueError,
    ErrorKind,
    ValidationError,
    NotFoundError,
    ConflictError,
    DependencyError,
    ClinicNotFound,
    ClinicInactive,
    PatientNotFound,
    CheckInNotFound,
    EmptyQueue,
    QueueFull,
    InvalidTransition,
    AlreadyClaimed,
    TransitionConflict
)
from .events import EventSink

__all__ = [
    "QueueEngine",
    "EventSink",
    # Errors
    "QueueError", "ErrorKind", "ValidationError", "NotFoundError",
    "ConflictError", "DependencyError", "ClinicNotFound", "ClinicInactive",
    "PatientNotFound", "CheckInNotFound", "EmptyQueue", "QueueFull",
    "InvalidTransition", "AlreadyClaimed", "TransitionConflict"
]
