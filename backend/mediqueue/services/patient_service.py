"""
Patient management service.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List

from ..core.errors import PatientNotFound, ValidationError
from ..models.check_in import PatientInfo, PatientRef
from ..models.patient import Patient, PatientContact, PatientCreate, PatientPage, PatientUpdate
from ..repositories.base import PatientRepository

logger = logging.getLogger(__name__)


class PatientService:
    """Patient management service."""

    def __init__(self, patients: PatientRepository):
        self.patients = patients

    async def create_patient(self, patient_data: PatientCreate) -> Patient:
        """Create a new patient record."""
        patient = Patient(
            _id=uuid.uuid4().hex[:8],
            created_at=datetime.now(timezone.utc),
            **patient_data.model_dump()
        )
        await self.patients.create(patient)
        return patient

    async def get_patient(self, patient_id: str) -> Patient:
        patient = await self.patients.find_by_id(patient_id)
        if patient is None:
            raise PatientNotFound(f"Patient {patient_id} not found")
        return patient

    async def list_patients(self, page: int = 1, limit: int = 50) -> PatientPage:
        """Active patients, alphabetical, one page at a time."""
        skip = (page - 1) * limit
        patients = await self.patients.list_active(skip=skip, limit=limit)
        total = await self.patients.count_active()
        return PatientPage(
            data=patients,
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0
        )

    async def search_patients(self, query: str, limit: int = 20) -> List[Patient]:
        return await self.patients.search(query, limit=limit)

    async def update_patient(self, patient_id: str, updates: PatientUpdate) -> Patient:
        """Update patient record."""
        update_data = updates.model_dump(exclude_unset=True)
        if not update_data:
            return await self.get_patient(patient_id)

        update_data["updated_at"] = datetime.now(timezone.utc)
        patient = await self.patients.update(patient_id, update_data)
        if patient is None:
            raise PatientNotFound(f"Patient {patient_id} not found")
        return patient

    async def deactivate_patient(self, patient_id: str) -> Patient:
        """Soft delete, so past check-ins keep a valid patient reference."""
        patient = await self.patients.update(
            patient_id, {"is_active": False, "updated_at": datetime.now(timezone.utc)}
        )
        if patient is None:
            raise PatientNotFound(f"Patient {patient_id} not found")
        return patient

    async def resolve_for_check_in(self, info: PatientInfo) -> PatientRef:
        """Find the patient named in a check-in request, registering them if new."""
        if info.patient_id:
            existing = await self.patients.find_by_id(info.patient_id)
            if existing is not None:
                return PatientRef(id=existing.id, name=existing.full_name)

        if not info.first_name or not info.last_name:
            raise ValidationError("First and last name are required for new patients")

        patient = await self.create_patient(PatientCreate(
            first_name=info.first_name,
            last_name=info.last_name,
            date_of_birth=info.date_of_birth,
            contact_info=PatientContact(phone=info.phone, email=info.email)
        ))
        logger.info("Registered patient %s during check-in", patient.id)
        return PatientRef(id=patient.id, name=patient.full_name)
