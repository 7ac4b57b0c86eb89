"""
Queue read models and change events.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from .check_in import CheckInStatus, CheckInPriority


class QueueEventType(str, Enum):
    """Change notifications published per clinic."""
    QUEUE_CHANGED = "queue-changed"
    STATUS_CHANGED = "status-changed"
    PATIENT_CALLED = "patient-called"


class QueueEvent(BaseModel):
    """Envelope sent to queue subscribers."""
    clinic_id: str
    type: QueueEventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime


class QueueSnapshotEntry(BaseModel):
    """One active check-in as shown on the queue board."""
    check_in_id: str
    patient_id: str
    patient_name: Optional[str] = None
    rank: Optional[int] = None
    position: int
    status: CheckInStatus
    priority: CheckInPriority
    check_in_time: datetime
    estimated_wait_time: Optional[float] = None
    visit_reason: Optional[str] = None


class ClinicQueueSnapshot(BaseModel):
    """Per clinic-day view of the queue, always rebuilt from check-ins."""
    clinic_id: str
    day: str
    queue_size: int = 0
    current_queue: List[QueueSnapshotEntry] = []
    served_today: int = 0
    average_wait_time: float = 0
    last_updated: datetime


class QueuePosition(BaseModel):
    """Where a check-in stands right now."""
    check_in_id: str
    current_rank: Optional[int] = Field(None, description="Live 1-based rank, None once no longer queued")
    original_position: int
    status: CheckInStatus
    estimated_wait_time: Optional[float] = None
