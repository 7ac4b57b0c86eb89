"""
Dependency providers wiring routers to storage, services and the engine.

Tests swap the three repository providers through
``app.dependency_overrides``; everything else is built on top of them.
"""

from fastapi import Depends

from ..core.engine import QueueEngine
from ..core.events import EventSink
from ..repositories.base import CheckInRepository, ClinicDirectory, PatientRepository
from ..repositories.mongo import MongoCheckInRepository, MongoClinicDirectory, MongoPatientRepository
from ..services.analytics_service import AnalyticsService
from ..services.clinic_service import ClinicService
from ..services.notification_service import queue_events
from ..services.patient_service import PatientService


def get_check_in_repository() -> CheckInRepository:
    return MongoCheckInRepository()


def get_clinic_directory() -> ClinicDirectory:
    return MongoClinicDirectory()


def get_patient_repository() -> PatientRepository:
    return MongoPatientRepository()


def get_event_sink() -> EventSink:
    return queue_events


def get_queue_engine(
    check_ins: CheckInRepository = Depends(get_check_in_repository),
    clinics: ClinicDirectory = Depends(get_clinic_directory),
    events: EventSink = Depends(get_event_sink)
) -> QueueEngine:
    return QueueEngine(check_ins, clinics, events)


def get_clinic_service(clinics: ClinicDirectory = Depends(get_clinic_directory)) -> ClinicService:
    return ClinicService(clinics)


def get_patient_service(patients: PatientRepository = Depends(get_patient_repository)) -> PatientService:
    return PatientService(patients)


def get_analytics_service(
    engine: QueueEngine = Depends(get_queue_engine),
    patients: PatientRepository = Depends(get_patient_repository)
) -> AnalyticsService:
    return AnalyticsService(engine, patients)
