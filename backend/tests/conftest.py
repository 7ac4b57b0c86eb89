"""Shared fixtures: in-memory storage, a controllable clock and an event recorder."""

from datetime import datetime, timedelta, timezone

import pytest

from mediqueue.core.engine import QueueEngine
from mediqueue.core.events import EventSink
from mediqueue.models.check_in import PatientRef
from mediqueue.models.clinic import Clinic
from mediqueue.repositories.memory import (
    MemoryCheckInRepository,
    MemoryClinicDirectory,
    MemoryPatientRepository,
)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSink(EventSink):
    def __init__(self):
        self.events = []

    async def publish(self, clinic_id, event_type, payload):
        self.events.append((clinic_id, event_type, payload))

    def of_type(self, event_type):
        return [e for e in self.events if e[1] == event_type]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def check_ins():
    return MemoryCheckInRepository()


@pytest.fixture
def clinics():
    return MemoryClinicDirectory()


@pytest.fixture
def patients():
    return MemoryPatientRepository()


@pytest.fixture
def events():
    return RecordingSink()


@pytest.fixture
def engine(check_ins, clinics, events, clock):
    return QueueEngine(check_ins, clinics, events, clock=clock, tz="UTC", call_next_retries=3)


@pytest.fixture
def add_clinic(clinics):
    """Store a clinic directly in the in-memory directory."""
    def _add(clinic_id="c1", **overrides):
        data = {
            "_id": clinic_id,
            "name": "Downtown Walk-in",
            "avg_wait_time": 15,
            "max_queue_size": 50,
            "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        data.update(overrides)
        clinic = Clinic(**data)
        clinics.clinics[clinic.id] = clinic
        return clinic
    return _add


@pytest.fixture
def patient():
    def _patient(n=1):
        return PatientRef(id=f"p{n}", name=f"Patient {n}")
    return _patient
