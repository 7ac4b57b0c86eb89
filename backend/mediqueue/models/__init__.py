"""Pydantic models for MediQueue."""

from .check_in import (
    CheckIn,
    CheckInCreate,
    CheckInReceipt,
    CheckInStatus,
    CheckInPriority,
    DeviceInfo,
    LocationData,
    LocationProof,
    PatientInfo,
    PatientRef,
    StatusUpdateRequest
)
from .clinic import Clinic, ClinicCreate, ClinicUpdate, ClinicSettings, Address, QRCodeResponse
from .patient import Patient, PatientCreate, PatientUpdate, PatientPage
from .queue import ClinicQueueSnapshot, QueueSnapshotEntry, QueueEvent, QueueEventType, QueuePosition
from .analytics import Overview, ClinicAnalytics, PatientHistory, RealtimeStats

__all__ = [
    # Check-in
    "CheckIn", "CheckInCreate", "CheckInReceipt", "CheckInStatus", "CheckInPriority",
    "DeviceInfo", "LocationData", "LocationProof", "PatientInfo", "PatientRef",
    "StatusUpdateRequest",
    # Clinic
    "Clinic", "ClinicCreate", "ClinicUpdate", "ClinicSettings", "Address", "QRCodeResponse",
    # Patient
    "Patient", "PatientCreate", "PatientUpdate", "PatientPage",
    # Queue
    "ClinicQueueSnapshot", "QueueSnapshotEntry", "QueueEvent", "QueueEventType", "QueuePosition",
    # Analytics
    "Overview", "ClinicAnalytics", "PatientHistory", "RealtimeStats"
]
