"""
Analytics response models.
"""

from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime


class Overview(BaseModel):
    """System-wide totals."""
    total_clinics: int
    total_patients: int
    total_check_ins: int
    check_ins_today: int
    patients_served_today: int
    avg_wait_time: int


class WaitTimeStats(BaseModel):
    avg_wait_time: float = 0
    min_wait_time: float = 0
    max_wait_time: float = 0


class ClinicAnalytics(BaseModel):
    """Breakdowns for a single clinic over an optional date range."""
    clinic_id: str
    total_check_ins: int
    status_breakdown: Dict[str, int]
    priority_breakdown: Dict[str, int]
    wait_time_stats: WaitTimeStats
    hourly_distribution: Dict[int, int]
    daily_check_ins: Dict[str, int]


class VisitRecord(BaseModel):
    check_in_id: str
    clinic: str
    visit_reason: str
    status: str
    check_in_time: datetime
    wait_time: Optional[int] = None
    priority: str


class PatientHistory(BaseModel):
    patient_id: str
    total_visits: int
    visits: List[VisitRecord]


class RealtimeStats(BaseModel):
    """Live counters for a clinic's current day."""
    clinic_id: str
    clinic_name: str
    currently_waiting: int
    currently_in_service: int
    completed_today: int
    queue_capacity: int
    avg_wait_time: float
