"""
Clinic management API routes.
"""

from typing import List
from fastapi import APIRouter, status, Depends

from ..models.clinic import Clinic, ClinicCreate, ClinicUpdate, QRCodeResponse
from ..services.clinic_service import ClinicService
from .dependencies import get_clinic_service

router = APIRouter(prefix="/api/clinics", tags=["Clinics"])


@router.get("/", response_model=List[Clinic], response_model_by_alias=False)
async def list_clinics(service: ClinicService = Depends(get_clinic_service)):
    """List active clinics."""
    return await service.list_clinics()


@router.get("/{clinic_id}", response_model=Clinic, response_model_by_alias=False)
async def get_clinic(clinic_id: str, service: ClinicService = Depends(get_clinic_service)):
    """Get clinic by ID."""
    return await service.get_clinic(clinic_id)


@router.post("/", response_model=Clinic, response_model_by_alias=False, status_code=status.HTTP_201_CREATED)
async def create_clinic(
    clinic_data: ClinicCreate,
    service: ClinicService = Depends(get_clinic_service)
):
    """Register a new clinic."""
    return await service.create_clinic(clinic_data)


@router.put("/{clinic_id}", response_model=Clinic, response_model_by_alias=False)
async def update_clinic(
    clinic_id: str,
    updates: ClinicUpdate,
    service: ClinicService = Depends(get_clinic_service)
):
    """Update clinic configuration."""
    return await service.update_clinic(clinic_id, updates)


@router.delete("/{clinic_id}")
async def deactivate_clinic(clinic_id: str, service: ClinicService = Depends(get_clinic_service)):
    """Deactivate a clinic (soft delete)."""
    await service.deactivate_clinic(clinic_id)
    return {"message": "Clinic deactivated successfully"}


@router.get("/{clinic_id}/qr-code", response_model=QRCodeResponse)
async def get_qr_code(clinic_id: str, service: ClinicService = Depends(get_clinic_service)):
    """QR code pointing patients at the clinic's check-in page."""
    return await service.get_qr_code(clinic_id)
