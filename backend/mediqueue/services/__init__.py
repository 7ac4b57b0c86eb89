"""Services package for MediQueue."""

from .clinic_service import ClinicService
from .patient_service import PatientService
from .analytics_service import AnalyticsService
from .notification_service import QueueEventBroadcaster, queue_events
from .device_service import parse_user_agent

__all__ = [
    "ClinicService",
    "PatientService",
    "AnalyticsService",
    "QueueEventBroadcaster",
    "queue_events",
    "parse_user_agent"
]
