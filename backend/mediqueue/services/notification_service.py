"""
Push transport for queue events: one WebSocket room per clinic.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Set

from fastapi import WebSocket

from ..core.events import EventSink
from ..models.queue import QueueEvent, QueueEventType

logger = logging.getLogger(__name__)


class QueueEventBroadcaster(EventSink):
    """Fans queue events out to every socket subscribed to the clinic."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, clinic_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.rooms[clinic_id].add(websocket)
        logger.info("Client joined clinic room %s (%d listening)", clinic_id, len(self.rooms[clinic_id]))

    def disconnect(self, clinic_id: str, websocket: WebSocket) -> None:
        room = self.rooms.get(clinic_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self.rooms[clinic_id]

    def subscriber_count(self, clinic_id: str) -> int:
        return len(self.rooms.get(clinic_id, ()))

    async def publish(self, clinic_id: str, event_type: QueueEventType, payload: Dict[str, Any]) -> None:
        event = QueueEvent(
            clinic_id=clinic_id,
            type=event_type,
            payload=payload,
            occurred_at=datetime.now(timezone.utc)
        )
        message = event.model_dump(mode="json")

        for websocket in list(self.rooms.get(clinic_id, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning("Dropping subscriber of clinic %s: %s", clinic_id, e)
                self.disconnect(clinic_id, websocket)


queue_events = QueueEventBroadcaster()
