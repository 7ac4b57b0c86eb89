"""
Queue board, position lookup, call-next and live updates.
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..core.engine import QueueEngine
from ..models.check_in import CheckIn
from ..models.queue import ClinicQueueSnapshot, QueuePosition
from ..services.notification_service import queue_events
from .dependencies import get_queue_engine

router = APIRouter(prefix="/api/queues", tags=["Queue"])


@router.get("/{clinic_id}/current", response_model=ClinicQueueSnapshot)
async def get_current_queue(clinic_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    """Today's queue for a clinic; poll this when WebSockets are unavailable."""
    return await engine.snapshot(clinic_id)


@router.get("/position/{check_in_id}", response_model=QueuePosition)
async def get_position(check_in_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    """Live rank and original position of a check-in."""
    return await engine.position_of(check_in_id)


@router.post("/{clinic_id}/call-next", response_model=CheckIn, response_model_by_alias=False)
async def call_next_patient(clinic_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    """Call the highest-priority, earliest waiting patient."""
    return await engine.call_next(clinic_id)


@router.websocket("/ws/{clinic_id}")
async def queue_updates(websocket: WebSocket, clinic_id: str):
    """Push queue events for one clinic."""
    await queue_events.connect(clinic_id, websocket)
    try:
        while True:
            # Clients only listen; incoming frames are keep-alives
            await websocket.receive_text()
    except WebSocketDisconnect:
        queue_events.disconnect(clinic_id, websocket)
