"""
Check-in models for the walk-in queue.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class CheckInStatus(str, Enum):
    """Check-in lifecycle states."""
    WAITING = "waiting"
    CALLED = "called"
    IN_SERVICE = "in-service"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class CheckInPriority(str, Enum):
    """Triage priority, fixed at check-in."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EMERGENCY = "emergency"


ACTIVE_STATUSES = (CheckInStatus.WAITING, CheckInStatus.CALLED, CheckInStatus.IN_SERVICE)
QUEUED_STATUSES = (CheckInStatus.WAITING, CheckInStatus.CALLED)
TERMINAL_STATUSES = (CheckInStatus.COMPLETED, CheckInStatus.CANCELLED, CheckInStatus.NO_SHOW)


class LocationProof(BaseModel):
    """GPS fix submitted by the patient's device."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Reported accuracy in meters")


class LocationData(LocationProof):
    """Location proof as stored on the check-in, with the geofence verdict."""
    timestamp: datetime
    verified: bool = False
    distance_from_clinic: Optional[float] = None


class DeviceInfo(BaseModel):
    """Best-effort description of the device used to check in."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    browser: str = "Unknown"
    os: str = "Unknown"
    device: str = "Desktop"


class PatientRef(BaseModel):
    """The parts of a patient record the queue needs."""
    id: str
    name: str


class PatientInfo(BaseModel):
    """Patient details supplied at check-in; an existing id skips registration."""
    patient_id: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    date_of_birth: Optional[datetime] = None


class CheckInCreate(BaseModel):
    """Create a new check-in."""
    clinic_id: str
    patient_info: PatientInfo
    visit_reason: str = Field(..., min_length=1, max_length=500)
    priority: CheckInPriority = CheckInPriority.NORMAL
    location_data: Optional[LocationProof] = None
    has_appointment: bool = False
    appointment_time: Optional[datetime] = None
    notes: Optional[str] = None


class CheckIn(BaseModel):
    """A patient's visit instance in a clinic's queue."""
    id: str = Field(..., alias="_id")
    clinic_id: str
    patient_id: str
    patient_name: Optional[str] = None
    clinic_day: str = Field(..., description="Local calendar day, YYYY-MM-DD")
    queue_position: int = Field(..., ge=1)
    status: CheckInStatus = CheckInStatus.WAITING
    priority: CheckInPriority = CheckInPriority.NORMAL
    visit_reason: str
    has_appointment: bool = False
    appointment_time: Optional[datetime] = None
    check_in_time: datetime
    called_time: Optional[datetime] = None
    service_start_time: Optional[datetime] = None
    service_end_time: Optional[datetime] = None
    estimated_wait_time: Optional[float] = Field(None, description="Minutes, linear estimate")
    actual_wait_time: Optional[int] = Field(None, description="Minutes from check-in to service start")
    location_data: Optional[LocationData] = None
    device_info: Optional[DeviceInfo] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def is_queued(self) -> bool:
        return self.status in QUEUED_STATUSES


class CheckInReceipt(BaseModel):
    """What the patient gets back after checking in."""
    check_in_id: str
    queue_position: int
    estimated_wait_time: Optional[float] = None
    location_verified: bool = False
    message: str = "Check-in successful!"


class StatusUpdateRequest(BaseModel):
    """Move a check-in to another status."""
    status: CheckInStatus
