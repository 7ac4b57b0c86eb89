"""
Motor-backed repositories.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..core.errors import DependencyError
from ..database import Database
from ..models.check_in import CheckIn, CheckInStatus
from ..models.clinic import Clinic
from ..models.patient import Patient
from .base import CheckInRepository, ClinicDirectory, PatientRepository

logger = logging.getLogger(__name__)


def translate_errors(func):
    """Surface driver failures as DependencyError."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error("MongoDB error in %s: %s", func.__qualname__, e)
            raise DependencyError(f"Queue store unavailable: {e}") from e
    return wrapper


def _to_document(model) -> dict:
    # mode="json" would stringify datetimes; enums are converted field by field
    doc = model.model_dump(by_alias=True)
    for key, value in doc.items():
        if isinstance(value, Enum):
            doc[key] = value.value
    return doc


class MongoCheckInRepository(CheckInRepository):
    """Check-ins in the ``check_ins`` collection, positions in ``position_counters``."""

    def __init__(self, check_ins=None, counters=None):
        self.check_ins = check_ins if check_ins is not None else Database.get_collection("check_ins")
        self.counters = counters if counters is not None else Database.get_collection("position_counters")

    @staticmethod
    def _query(
        clinic_id=None, patient_id=None, day=None, statuses=None, since=None, until=None
    ) -> dict:
        query: Dict[str, Any] = {}
        if clinic_id:
            query["clinic_id"] = clinic_id
        if patient_id:
            query["patient_id"] = patient_id
        if day:
            query["clinic_day"] = day
        if statuses is not None:
            query["status"] = {"$in": [CheckInStatus(s).value for s in statuses]}
        if since or until:
            window = {}
            if since:
                window["$gte"] = since
            if until:
                window["$lte"] = until
            query["check_in_time"] = window
        return query

    @translate_errors
    async def create(self, entry: CheckIn) -> CheckIn:
        await self.check_ins.insert_one(_to_document(entry))
        return entry

    @translate_errors
    async def find_by_id(self, check_in_id: str) -> Optional[CheckIn]:
        doc = await self.check_ins.find_one({"_id": check_in_id})
        return CheckIn(**doc) if doc else None

    @translate_errors
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
        query = self._query(clinic_id, patient_id, day, statuses, since, until)
        cursor = self.check_ins.find(query).sort("check_in_time", -1 if newest_first else 1)
        if limit:
            cursor = cursor.limit(limit)

        results = []
        async for doc in cursor:
            results.append(CheckIn(**doc))
        return results

    @translate_errors
    async def count(
        self,
        clinic_id: Optional[str] = None,
        day: Optional[str] = None,
        statuses: Optional[Iterable[CheckInStatus]] = None
    ) -> int:
        return await self.check_ins.count_documents(
            self._query(clinic_id=clinic_id, day=day, statuses=statuses)
        )

    @translate_errors
    async def update_status(
        self,
        check_in_id: str,
        expected_status: CheckInStatus,
        updates: Dict[str, Any]
    ) -> Optional[CheckIn]:
        doc = await self.check_ins.find_one_and_update(
            {"_id": check_in_id, "status": expected_status.value},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return CheckIn(**doc) if doc else None

    @translate_errors
    async def next_position(self, clinic_id: str, day: str) -> int:
        key = f"{clinic_id}:{day}"
        update = {"$inc": {"seq": 1}, "$setOnInsert": {"clinic_id": clinic_id, "day": day}}
        try:
            doc = await self.counters.find_one_and_update(
                {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Two first check-ins of the day raced on the upsert; the document exists now
            doc = await self.counters.find_one_and_update(
                {"_id": key}, update, return_document=ReturnDocument.AFTER
            )
        return doc["seq"]


class MongoClinicDirectory(ClinicDirectory):
    """Clinics in the ``clinics`` collection."""

    def __init__(self, clinics=None):
        self.clinics = clinics if clinics is not None else Database.get_collection("clinics")

    @translate_errors
    async def create(self, clinic: Clinic) -> Clinic:
        await self.clinics.insert_one(_to_document(clinic))
        return clinic

    @translate_errors
    async def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        doc = await self.clinics.find_one({"_id": clinic_id})
        return Clinic(**doc) if doc else None

    @translate_errors
    async def update(self, clinic_id: str, updates: Dict[str, Any]) -> Optional[Clinic]:
        doc = await self.clinics.find_one_and_update(
            {"_id": clinic_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return Clinic(**doc) if doc else None

    @translate_errors
    async def list_active(self) -> List[Clinic]:
        cursor = self.clinics.find({"is_active": True}).sort("name", 1)
        return [Clinic(**doc) async for doc in cursor]

    @translate_errors
    async def count_active(self) -> int:
        return await self.clinics.count_documents({"is_active": True})

    @translate_errors
    async def try_reserve_slot(self, clinic_id: str) -> bool:
        result = await self.clinics.update_one(
            {
                "_id": clinic_id,
                "is_active": True,
                "$expr": {"$lt": ["$current_queue_size", "$max_queue_size"]}
            },
            {
                "$inc": {"current_queue_size": 1, "statistics.total_check_ins": 1},
                "$currentDate": {"updated_at": True}
            }
        )
        return result.modified_count == 1

    @translate_errors
    async def release_slot(self, clinic_id: str) -> None:
        await self.clinics.update_one(
            {"_id": clinic_id},
            {"$inc": {"current_queue_size": -1, "statistics.total_check_ins": -1}}
        )

    @translate_errors
    async def adjust_counters(self, clinic_id: str, active_delta: int = 0, served_delta: int = 0) -> None:
        increments = {}
        if active_delta:
            increments["current_queue_size"] = active_delta
        if served_delta:
            increments["statistics.total_patients_served"] = served_delta
        if not increments:
            return
        await self.clinics.update_one({"_id": clinic_id}, {"$inc": increments})


class MongoPatientRepository(PatientRepository):
    """Patients in the ``patients`` collection."""

    def __init__(self, patients=None):
        self.patients = patients if patients is not None else Database.get_collection("patients")

    @translate_errors
    async def create(self, patient: Patient) -> Patient:
        await self.patients.insert_one(_to_document(patient))
        return patient

    @translate_errors
    async def find_by_id(self, patient_id: str) -> Optional[Patient]:
        doc = await self.patients.find_one({"_id": patient_id})
        return Patient(**doc) if doc else None

    @translate_errors
    async def update(self, patient_id: str, updates: Dict[str, Any]) -> Optional[Patient]:
        doc = await self.patients.find_one_and_update(
            {"_id": patient_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return Patient(**doc) if doc else None

    @translate_errors
    async def list_active(self, skip: int = 0, limit: int = 50) -> List[Patient]:
        cursor = (
            self.patients.find({"is_active": True})
            .sort([("last_name", 1), ("first_name", 1)])
            .skip(skip)
            .limit(limit)
        )
        return [Patient(**doc) async for doc in cursor]

    @translate_errors
    async def count_active(self) -> int:
        return await self.patients.count_documents({"is_active": True})

    @translate_errors
    async def search(self, query: str, limit: int = 20) -> List[Patient]:
        pattern = {"$regex": re.escape(query), "$options": "i"}
        cursor = self.patients.find({
            "is_active": True,
            "$or": [
                {"first_name": pattern},
                {"last_name": pattern},
                {"contact_info.phone": pattern},
                {"contact_info.email": pattern}
            ]
        }).limit(limit)
        return [Patient(**doc) async for doc in cursor]
