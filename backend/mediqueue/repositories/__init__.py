"""Storage backends for check-ins, clinics and patients."""

from .base import CheckInRepository, ClinicDirectory, PatientRepository
from .memory import MemoryCheckInRepository, MemoryClinicDirectory, MemoryPatientRepository
from .mongo import MongoCheckInRepository, MongoClinicDirectory, MongoPatientRepository

__all__ = [
    "CheckInRepository", "ClinicDirectory", "PatientRepository",
    "MemoryCheckInRepository", "MemoryClinicDirectory", "MemoryPatientRepository",
    "MongoCheckInRepository", "MongoClinicDirectory", "MongoPatientRepository"
]
