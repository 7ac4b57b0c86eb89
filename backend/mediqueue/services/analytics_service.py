"""
Queue analytics computed from check-in records.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..core.engine import QueueEngine
from ..core.errors import ClinicNotFound
from ..models.analytics import (
    ClinicAnalytics,
    Overview,
    PatientHistory,
    RealtimeStats,
    VisitRecord,
    WaitTimeStats,
)
from ..models.check_in import CheckInStatus
from ..repositories.base import PatientRepository


class AnalyticsService:
    """Read-only aggregates over check-ins, clinics and patients."""

    def __init__(self, engine: QueueEngine, patients: PatientRepository):
        self.engine = engine
        self.check_ins = engine.check_ins
        self.clinics = engine.clinics
        self.patients = patients

    async def overview(self) -> Overview:
        today = self.engine.clinic_day()
        completed = await self.check_ins.find(day=today, statuses=[CheckInStatus.COMPLETED])
        waits = [e.actual_wait_time for e in completed if e.actual_wait_time is not None]

        return Overview(
            total_clinics=await self.clinics.count_active(),
            total_patients=await self.patients.count_active(),
            total_check_ins=await self.check_ins.count(),
            check_ins_today=await self.check_ins.count(day=today),
            patients_served_today=len(completed),
            avg_wait_time=round(sum(waits) / len(waits)) if waits else 0
        )

    async def clinic_analytics(
        self,
        clinic_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> ClinicAnalytics:
        """Status, priority, wait-time and time-of-day breakdowns for one clinic."""
        entries = await self.check_ins.find(clinic_id=clinic_id, since=start_date, until=end_date)

        waits = [e.actual_wait_time for e in entries if e.actual_wait_time is not None]
        wait_stats = WaitTimeStats()
        if waits:
            wait_stats = WaitTimeStats(
                avg_wait_time=round(sum(waits) / len(waits), 1),
                min_wait_time=min(waits),
                max_wait_time=max(waits)
            )

        hourly = Counter(e.check_in_time.astimezone(self.engine.tz).hour for e in entries)

        week_ago = self.engine.clock() - timedelta(days=7)
        recent = await self.check_ins.find(clinic_id=clinic_id, since=week_ago)
        daily = Counter(e.clinic_day for e in recent)

        return ClinicAnalytics(
            clinic_id=clinic_id,
            total_check_ins=len(entries),
            status_breakdown=dict(Counter(e.status.value for e in entries)),
            priority_breakdown=dict(Counter(e.priority.value for e in entries)),
            wait_time_stats=wait_stats,
            hourly_distribution=dict(sorted(hourly.items())),
            daily_check_ins=dict(sorted(daily.items()))
        )

    async def patient_history(self, patient_id: str, limit: int = 50) -> PatientHistory:
        visits = await self.check_ins.find(patient_id=patient_id, newest_first=True, limit=limit)

        clinic_names: Dict[str, str] = {}
        records = []
        for visit in visits:
            if visit.clinic_id not in clinic_names:
                clinic = await self.clinics.get_clinic(visit.clinic_id)
                clinic_names[visit.clinic_id] = clinic.name if clinic else "Unknown"
            records.append(VisitRecord(
                check_in_id=visit.id,
                clinic=clinic_names[visit.clinic_id],
                visit_reason=visit.visit_reason,
                status=visit.status.value,
                check_in_time=visit.check_in_time,
                wait_time=visit.actual_wait_time,
                priority=visit.priority.value
            ))

        return PatientHistory(patient_id=patient_id, total_visits=len(records), visits=records)

    async def realtime(self, clinic_id: str) -> RealtimeStats:
        clinic = await self.clinics.get_clinic(clinic_id)
        if clinic is None:
            raise ClinicNotFound(f"Clinic {clinic_id} not found")

        today = self.engine.clinic_day()
        entries = await self.check_ins.find(clinic_id=clinic_id, day=today)
        by_status = Counter(e.status for e in entries)

        return RealtimeStats(
            clinic_id=clinic_id,
            clinic_name=clinic.name,
            currently_waiting=by_status[CheckInStatus.WAITING],
            currently_in_service=by_status[CheckInStatus.IN_SERVICE],
            completed_today=by_status[CheckInStatus.COMPLETED],
            queue_capacity=clinic.max_queue_size,
            avg_wait_time=clinic.avg_wait_time
        )
