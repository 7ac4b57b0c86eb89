"""
In-process repositories.

Used by the test suite and for running the API without MongoDB. Counter and
status writes take a per-clinic ``asyncio.Lock`` so they keep the same
check-and-set semantics as the conditional updates in ``mongo``.
"""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..models.check_in import CheckIn, CheckInStatus
from ..models.clinic import Clinic
from ..models.patient import Patient
from .base import CheckInRepository, ClinicDirectory, PatientRepository


def _apply(model, updates: Dict[str, Any]):
    """Return a validated copy of ``model`` with ``updates`` merged in."""
    return type(model)(**{**model.model_dump(by_alias=True), **updates})


class MemoryCheckInRepository(CheckInRepository):

    def __init__(self):
        self.entries: Dict[str, CheckIn] = {}
        self.sequences: Dict[str, int] = defaultdict(int)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def create(self, entry: CheckIn) -> CheckIn:
        self.entries[entry.id] = entry.model_copy()
        return entry

    async def find_by_id(self, check_in_id: str) -> Optional[CheckIn]:
        entry = self.entries.get(check_in_id)
        return entry.model_copy() if entry else None

    def _matching(
        self, clinic_id=None, patient_id=None, day=None, statuses=None, since=None, until=None
    ) -> List[CheckIn]:
        wanted = {CheckInStatus(s) for s in statuses} if statuses is not None else None
        results = []
        for entry in self.entries.values():
            if clinic_id and entry.clinic_id != clinic_id:
                continue
            if patient_id and entry.patient_id != patient_id:
                continue
            if day and entry.clinic_day != day:
                continue
            if wanted is not None and entry.status not in wanted:
                continue
            if since and entry.check_in_time < since:
                continue
            if until and entry.check_in_time > until:
                continue
            results.append(entry.model_copy())
        return results

    async def find(
        self,
        clinic_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        day: Optional[str] = None,
        statuses: Optional[Iterable[CheckInStatus]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = False
    ) -> List[CheckIn]:
        results = self._matching(clinic_id, patient_id, day, statuses, since, until)
        results.sort(key=lambda e: e.check_in_time, reverse=newest_first)
        return results[:limit] if limit else results

    async def count(
        self,
        clinic_id: Optional[str] = None,
        day: Optional[str] = None,
        statuses: Optional[Iterable[CheckInStatus]] = None
    ) -> int:
        return len(self._matching(clinic_id=clinic_id, day=day, statuses=statuses))

    async def update_status(
        self,
        check_in_id: str,
        expected_status: CheckInStatus,
        updates: Dict[str, Any]
    ) -> Optional[CheckIn]:
        entry = self.entries.get(check_in_id)
        if entry is None:
            return None
        async with self._locks[entry.clinic_id]:
            entry = self.entries[check_in_id]
            if entry.status != expected_status:
                return None
            updated = _apply(entry, updates)
            self.entries[check_in_id] = updated
            return updated.model_copy()

    async def next_position(self, clinic_id: str, day: str) -> int:
        key = f"{clinic_id}:{day}"
        async with self._locks[clinic_id]:
            self.sequences[key] += 1
            return self.sequences[key]


class MemoryClinicDirectory(ClinicDirectory):

    def __init__(self):
        self.clinics: Dict[str, Clinic] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def create(self, clinic: Clinic) -> Clinic:
        self.clinics[clinic.id] = clinic.model_copy(deep=True)
        return clinic

    async def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        clinic = self.clinics.get(clinic_id)
        return clinic.model_copy(deep=True) if clinic else None

    async def update(self, clinic_id: str, updates: Dict[str, Any]) -> Optional[Clinic]:
        async with self._locks[clinic_id]:
            clinic = self.clinics.get(clinic_id)
            if clinic is None:
                return None
            self.clinics[clinic_id] = _apply(clinic, updates)
            return self.clinics[clinic_id].model_copy(deep=True)

    async def list_active(self) -> List[Clinic]:
        active = [c.model_copy(deep=True) for c in self.clinics.values() if c.is_active]
        return sorted(active, key=lambda c: c.name)

    async def count_active(self) -> int:
        return sum(1 for c in self.clinics.values() if c.is_active)

    async def try_reserve_slot(self, clinic_id: str) -> bool:
        async with self._locks[clinic_id]:
            clinic = self.clinics.get(clinic_id)
            if clinic is None or not clinic.is_active:
                return False
            if clinic.current_queue_size >= clinic.max_queue_size:
                return False
            clinic.current_queue_size += 1
            clinic.statistics.total_check_ins += 1
            return True

    async def release_slot(self, clinic_id: str) -> None:
        async with self._locks[clinic_id]:
            clinic = self.clinics.get(clinic_id)
            if clinic is not None:
                clinic.current_queue_size -= 1
                clinic.statistics.total_check_ins -= 1

    async def adjust_counters(self, clinic_id: str, active_delta: int = 0, served_delta: int = 0) -> None:
        async with self._locks[clinic_id]:
            clinic = self.clinics.get(clinic_id)
            if clinic is not None:
                clinic.current_queue_size += active_delta
                clinic.statistics.total_patients_served += served_delta


class MemoryPatientRepository(PatientRepository):

    def __init__(self):
        self.patients: Dict[str, Patient] = {}

    async def create(self, patient: Patient) -> Patient:
        self.patients[patient.id] = patient.model_copy(deep=True)
        return patient

    async def find_by_id(self, patient_id: str) -> Optional[Patient]:
        patient = self.patients.get(patient_id)
        return patient.model_copy(deep=True) if patient else None

    async def update(self, patient_id: str, updates: Dict[str, Any]) -> Optional[Patient]:
        patient = self.patients.get(patient_id)
        if patient is None:
            return None
        self.patients[patient_id] = _apply(patient, updates)
        return self.patients[patient_id].model_copy(deep=True)

    def _active_sorted(self) -> List[Patient]:
        active = [p for p in self.patients.values() if p.is_active]
        return sorted(active, key=lambda p: (p.last_name, p.first_name))

    async def list_active(self, skip: int = 0, limit: int = 50) -> List[Patient]:
        return [p.model_copy(deep=True) for p in self._active_sorted()[skip:skip + limit]]

    async def count_active(self) -> int:
        return len(self._active_sorted())

    async def search(self, query: str, limit: int = 20) -> List[Patient]:
        needle = query.lower()
        matches = []
        for patient in self._active_sorted():
            haystack = [
                patient.first_name,
                patient.last_name,
                patient.contact_info.phone or "",
                patient.contact_info.email or "",
            ]
            if any(needle in value.lower() for value in haystack):
                matches.append(patient.model_copy(deep=True))
        return matches[:limit]
