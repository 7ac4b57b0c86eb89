"""
Check-in API routes.
"""

from fastapi import APIRouter, status, Depends, Request

from ..core.engine import QueueEngine
from ..models.check_in import CheckIn, CheckInCreate, CheckInReceipt, StatusUpdateRequest
from ..services.device_service import parse_user_agent
from ..services.patient_service import PatientService
from .dependencies import get_patient_service, get_queue_engine

router = APIRouter(prefix="/api/check-ins", tags=["Check-ins"])


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


@router.post("/", response_model=CheckInReceipt, status_code=status.HTTP_201_CREATED)
async def create_check_in(
    check_in_data: CheckInCreate,
    request: Request,
    engine: QueueEngine = Depends(get_queue_engine),
    patients: PatientService = Depends(get_patient_service)
):
    """Check a patient into a clinic's walk-in queue."""
    patient = await patients.resolve_for_check_in(check_in_data.patient_info)
    entry = await engine.check_in(
        check_in_data.clinic_id,
        patient,
        check_in_data.visit_reason,
        priority=check_in_data.priority,
        location=check_in_data.location_data,
        has_appointment=check_in_data.has_appointment,
        appointment_time=check_in_data.appointment_time,
        device_info=parse_user_agent(request.headers.get("user-agent"), client_ip(request)),
        notes=check_in_data.notes
    )
    return CheckInReceipt(
        check_in_id=entry.id,
        queue_position=entry.queue_position,
        estimated_wait_time=entry.estimated_wait_time,
        location_verified=bool(entry.location_data and entry.location_data.verified)
    )


@router.get("/{check_in_id}", response_model=CheckIn, response_model_by_alias=False)
async def get_check_in(check_in_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    """Get check-in by ID."""
    return await engine.get_check_in(check_in_id)


@router.put("/{check_in_id}/status", response_model=CheckIn, response_model_by_alias=False)
async def update_check_in_status(
    check_in_id: str,
    request: StatusUpdateRequest,
    engine: QueueEngine = Depends(get_queue_engine)
):
    """Move a check-in to another status."""
    return await engine.update_status(check_in_id, request.status)


@router.delete("/{check_in_id}")
async def cancel_check_in(check_in_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    """Cancel a waiting or called check-in."""
    await engine.cancel(check_in_id)
    return {"message": "Check-in cancelled successfully"}
