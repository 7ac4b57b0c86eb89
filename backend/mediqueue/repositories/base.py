"""
Storage interfaces the queue engine and services depend on.

Concrete backends live in ``mongo`` (Motor) and ``memory`` (tests, local
runs). Every method that mutates shared counters or a check-in's status is
a single conditional write in the backend, so callers never need a lock.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..core.errors import ClinicInactive, ClinicNotFound
from ..models.check_in import CheckIn, CheckInStatus, ACTIVE_STATUSES
from ..models.clinic import Clinic
from ..models.patient import Patient


class CheckInRepository(ABC):
    """Check-in store. Entries are never deleted."""

    @abstractmethod
    async def create(self, entry: CheckIn) -> CheckIn:
        ...

    @abstractmethod
    async def find_by_id(self, check_in_id: str) -> Optional[CheckIn]:
        ...

    @abstractmethod
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
        """Filter check-ins; results are ordered by check-in time."""

    @abstractmethod
    async def count(
        self,
        clinic_id: Optional[str] = None,
        day: Optional[str] = None,
        statuses: Optional[Iterable[CheckInStatus]] = None
    ) -> int:
        ...

    @abstractmethod
    async def update_status(
        self,
        check_in_id: str,
        expected_status: CheckInStatus,
        updates: Dict[str, Any]
    ) -> Optional[CheckIn]:
        """Apply ``updates`` only if the entry is still in ``expected_status``.

        Returns the updated entry, or None when the status had already moved.
        """

    @abstractmethod
    async def next_position(self, clinic_id: str, day: str) -> int:
        """Atomically take the next value of the clinic-day position sequence."""

    async def find_active_by_clinic_day(self, clinic_id: str, day: str) -> List[CheckIn]:
        return await self.find(clinic_id=clinic_id, day=day, statuses=ACTIVE_STATUSES)

    async def count_active_by_clinic_day(self, clinic_id: str, day: str) -> int:
        return await self.count(clinic_id=clinic_id, day=day, statuses=ACTIVE_STATUSES)


class ClinicDirectory(ABC):
    """Clinic configuration plus the per-clinic atomic counters."""

    @abstractmethod
    async def create(self, clinic: Clinic) -> Clinic:
        ...

    @abstractmethod
    async def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        ...

    @abstractmethod
    async def update(self, clinic_id: str, updates: Dict[str, Any]) -> Optional[Clinic]:
        ...

    @abstractmethod
    async def list_active(self) -> List[Clinic]:
        ...

    @abstractmethod
    async def count_active(self) -> int:
        ...

    @abstractmethod
    async def try_reserve_slot(self, clinic_id: str) -> bool:
        """Increment the active-queue counter if the clinic is active and below capacity."""

    @abstractmethod
    async def release_slot(self, clinic_id: str) -> None:
        """Undo a reservation whose check-in was never stored."""

    @abstractmethod
    async def adjust_counters(self, clinic_id: str, active_delta: int = 0, served_delta: int = 0) -> None:
        ...

    async def get_active_clinic(self, clinic_id: str) -> Clinic:
        clinic = await self.get_clinic(clinic_id)
        if clinic is None:
            raise ClinicNotFound(f"Clinic {clinic_id} not found")
        if not clinic.is_active:
            raise ClinicInactive(f"Clinic {clinic_id} is inactive")
        return clinic

    async def decrement_active_queue(self, clinic_id: str) -> None:
        await self.adjust_counters(clinic_id, active_delta=-1)

    async def increment_served_count(self, clinic_id: str) -> None:
        await self.adjust_counters(clinic_id, served_delta=1)


class PatientRepository(ABC):
    """Patient records; deactivation is a flag, never a delete."""

    @abstractmethod
    async def create(self, patient: Patient) -> Patient:
        ...

    @abstractmethod
    async def find_by_id(self, patient_id: str) -> Optional[Patient]:
        ...

    @abstractmethod
    async def update(self, patient_id: str, updates: Dict[str, Any]) -> Optional[Patient]:
        ...

    @abstractmethod
    async def list_active(self, skip: int = 0, limit: int = 50) -> List[Patient]:
        """Active patients sorted by last name, then first name."""

    @abstractmethod
    async def count_active(self) -> int:
        ...

    @abstractmethod
    async def search(self, query: str, limit: int = 20) -> List[Patient]:
        """Case-insensitive match on name, phone or email."""
