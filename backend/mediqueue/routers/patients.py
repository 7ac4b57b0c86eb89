"""
Patient management API routes.
"""

from typing import List
from fastapi import APIRouter, status, Depends, Query

from ..models.patient import Patient, PatientCreate, PatientPage, PatientUpdate
from ..services.patient_service import PatientService
from .dependencies import get_patient_service

router = APIRouter(prefix="/api/patients", tags=["Patients"])


@router.get("/", response_model=PatientPage, response_model_by_alias=False)
async def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: PatientService = Depends(get_patient_service)
):
    """List active patients, paginated."""
    return await service.list_patients(page=page, limit=limit)


@router.get("/search/{query}", response_model=List[Patient], response_model_by_alias=False)
async def search_patients(query: str, service: PatientService = Depends(get_patient_service)):
    """Search patients by name, phone or email."""
    return await service.search_patients(query)


@router.get("/{patient_id}", response_model=Patient, response_model_by_alias=False)
async def get_patient(patient_id: str, service: PatientService = Depends(get_patient_service)):
    """Get patient by ID."""
    return await service.get_patient(patient_id)


@router.post("/", response_model=Patient, response_model_by_alias=False, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    service: PatientService = Depends(get_patient_service)
):
    """Register a new patient."""
    return await service.create_patient(patient_data)


@router.put("/{patient_id}", response_model=Patient, response_model_by_alias=False)
async def update_patient(
    patient_id: str,
    updates: PatientUpdate,
    service: PatientService = Depends(get_patient_service)
):
    """Update patient information."""
    return await service.update_patient(patient_id, updates)


@router.delete("/{patient_id}")
async def deactivate_patient(patient_id: str, service: PatientService = Depends(get_patient_service)):
    """Deactivate a patient (soft delete)."""
    await service.deactivate_patient(patient_id)
    return {"message": "Patient deactivated successfully"}
