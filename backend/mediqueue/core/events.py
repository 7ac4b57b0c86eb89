"""
Event sink interface for queue change notifications.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..models.queue import QueueEventType


class EventSink(ABC):
    """Receives queue events scoped to a clinic.

    Delivery is fire-and-forget: the engine logs and ignores any exception a
    sink raises, so a failed broadcast never undoes a state change.
    """

    @abstractmethod
    async def publish(self, clinic_id: str, event_type: QueueEventType, payload: Dict[str, Any]) -> None:
        ...


class NullEventSink(EventSink):
    """Drops every event; for engines nobody subscribes to."""

    async def publish(self, clinic_id: str, event_type: QueueEventType, payload: Dict[str, Any]) -> None:
        return None
