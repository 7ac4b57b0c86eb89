import asyncio

import pytest

from mediqueue.core.engine import QueueEngine
from mediqueue.core.errors import (
    AlreadyClaimed,
    ClinicInactive,
    ClinicNotFound,
    CheckInNotFound,
    DependencyError,
    EmptyQueue,
    ErrorKind,
    InvalidTransition,
    QueueFull,
    TransitionConflict,
    ValidationError,
)
from mediqueue.models.check_in import CheckInStatus, LocationProof
from mediqueue.models.clinic import Address, ClinicSettings
from mediqueue.models.queue import QueueEventType
from mediqueue.repositories.memory import MemoryCheckInRepository

pytestmark = pytest.mark.anyio


async def active_counter(clinics, clinic_id="c1"):
    return (await clinics.get_clinic(clinic_id)).current_queue_size


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------

async def test_positions_and_estimates_grow_with_queue(engine, add_clinic, patient, events):
    add_clinic(avg_wait_time=15)

    first = await engine.check_in("c1", patient(1), "Fever")
    second = await engine.check_in("c1", patient(2), "Cough")

    assert (first.queue_position, first.estimated_wait_time) == (1, 15)
    assert (second.queue_position, second.estimated_wait_time) == (2, 30)
    assert first.status == CheckInStatus.WAITING
    assert first.clinic_day == "2026-03-02"
    assert len(events.of_type(QueueEventType.QUEUE_CHANGED)) == 2


async def test_check_in_increments_clinic_counters(engine, add_clinic, clinics, patient):
    add_clinic()
    await engine.check_in("c1", patient(1), "Fever")

    clinic = await clinics.get_clinic("c1")
    assert clinic.current_queue_size == 1
    assert clinic.statistics.total_check_ins == 1


async def test_full_queue_rejects_check_in(engine, add_clinic, check_ins, clinics, patient, events):
    add_clinic(max_queue_size=1)
    await engine.check_in("c1", patient(1), "Fever")

    with pytest.raises(QueueFull) as exc_info:
        await engine.check_in("c1", patient(2), "Cough")

    assert exc_info.value.kind == ErrorKind.CONFLICT
    assert await active_counter(clinics) == 1
    assert await check_ins.count(clinic_id="c1") == 1
    assert len(events.events) == 1


async def test_unknown_clinic(engine, patient):
    with pytest.raises(ClinicNotFound):
        await engine.check_in("nope", patient(1), "Fever")


async def test_inactive_clinic(engine, add_clinic, patient):
    add_clinic(is_active=False)
    with pytest.raises(ClinicInactive):
        await engine.check_in("c1", patient(1), "Fever")


@pytest.mark.parametrize("reason,priority", [("   ", "normal"), ("Fever", "urgent")])
async def test_malformed_check_in_is_a_validation_error(engine, add_clinic, clinics, patient, reason, priority):
    add_clinic()
    with pytest.raises(ValidationError):
        await engine.check_in("c1", patient(1), reason, priority=priority)
    assert await active_counter(clinics) == 0


async def test_failed_store_releases_reserved_slot(add_clinic, clinics, events, clock, patient):
    class BrokenStore(MemoryCheckInRepository):
        async def create(self, entry):
            raise DependencyError("store down")

    add_clinic()
    engine = QueueEngine(BrokenStore(), clinics, events, clock=clock, tz="UTC")

    with pytest.raises(DependencyError):
        await engine.check_in("c1", patient(1), "Fever")

    clinic = await clinics.get_clinic("c1")
    assert clinic.current_queue_size == 0
    assert clinic.statistics.total_check_ins == 0
    assert events.events == []


async def test_publish_failure_does_not_undo_check_in(add_clinic, check_ins, clinics, clock, patient):
    class ExplodingSink:
        async def publish(self, clinic_id, event_type, payload):
            raise RuntimeError("socket gone")

    add_clinic()
    engine = QueueEngine(check_ins, clinics, ExplodingSink(), clock=clock, tz="UTC")

    entry = await engine.check_in("c1", patient(1), "Fever")

    assert await check_ins.find_by_id(entry.id) is not None
    assert await active_counter(clinics) == 1


async def test_concurrent_check_ins_get_distinct_consecutive_positions(engine, add_clinic, patient):
    add_clinic()
    await engine.check_in("c1", patient(0), "Earlier visit")

    entries = await asyncio.gather(*[
        engine.check_in("c1", patient(n), "Fever") for n in range(1, 21)
    ])

    assert sorted(e.queue_position for e in entries) == list(range(2, 22))


async def test_concurrent_check_ins_never_exceed_capacity(engine, add_clinic, clinics, check_ins, patient):
    add_clinic(max_queue_size=5)

    results = await asyncio.gather(
        *[engine.check_in("c1", patient(n), "Fever") for n in range(10)],
        return_exceptions=True
    )

    admitted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, QueueFull)]
    assert len(admitted) == 5
    assert len(rejected) == 5
    assert await active_counter(clinics) == 5
    assert await check_ins.count(clinic_id="c1") == 5


async def test_positions_restart_on_a_new_day(engine, add_clinic, clock, patient):
    add_clinic()
    await engine.check_in("c1", patient(1), "Fever")
    await engine.check_in("c1", patient(2), "Fever")

    clock.advance(days=1)
    entry = await engine.check_in("c1", patient(3), "Fever")

    assert entry.queue_position == 1
    assert entry.clinic_day == "2026-03-03"


async def test_day_boundary_follows_clinic_timezone(check_ins, clinics, add_clinic, clock, patient):
    add_clinic()
    # 09:00 UTC is still the previous evening in Honolulu
    engine = QueueEngine(check_ins, clinics, clock=clock, tz="Pacific/Honolulu")
    entry = await engine.check_in("c1", patient(1), "Fever")
    assert entry.clinic_day == "2026-03-01"


# ---------------------------------------------------------------------------
# Location proof
# ---------------------------------------------------------------------------

def geofenced(add_clinic):
    return add_clinic(
        address=Address(latitude=40.7128, longitude=-74.0060),
        settings=ClinicSettings(enable_gps_verification=True, max_distance_meters=500),
    )


async def test_location_inside_geofence_is_verified(engine, add_clinic, patient):
    geofenced(add_clinic)
    entry = await engine.check_in(
        "c1", patient(1), "Fever", location=LocationProof(latitude=40.7130, longitude=-74.0062)
    )
    assert entry.location_data.verified is True
    assert entry.location_data.distance_from_clinic < 500


async def test_location_outside_geofence_is_flagged_not_denied(engine, add_clinic, patient):
    geofenced(add_clinic)
    entry = await engine.check_in(
        "c1", patient(1), "Fever", location=LocationProof(latitude=40.7580, longitude=-73.9855)
    )
    assert entry.status == CheckInStatus.WAITING
    assert entry.location_data.verified is False
    assert entry.location_data.distance_from_clinic > 500


async def test_location_without_gps_policy_is_stored_unverified(engine, add_clinic, patient):
    add_clinic()
    entry = await engine.check_in(
        "c1", patient(1), "Fever", location=LocationProof(latitude=1.0, longitude=2.0)
    )
    assert entry.location_data.verified is False
    assert entry.location_data.distance_from_clinic is None


# ---------------------------------------------------------------------------
# Call next
# ---------------------------------------------------------------------------

async def test_call_next_prefers_emergency(engine, add_clinic, patient, events, clock):
    add_clinic()
    await engine.check_in("c1", patient(1), "Rash", priority="normal")
    urgent = await engine.check_in("c1", patient(2), "Chest pain", priority="emergency")

    clock.advance(minutes=3)
    called = await engine.call_next("c1")

    assert called.id == urgent.id
    assert called.status == CheckInStatus.CALLED
    assert called.called_time == clock.now
    assert events.of_type(QueueEventType.PATIENT_CALLED)[0][2]["check_in_id"] == urgent.id


async def test_call_next_on_empty_queue(engine, add_clinic):
    add_clinic()
    with pytest.raises(EmptyQueue):
        await engine.call_next("c1")


async def test_call_next_unknown_clinic(engine):
    with pytest.raises(ClinicNotFound):
        await engine.call_next("nope")


async def test_concurrent_call_next_never_returns_same_patient(engine, add_clinic, patient):
    add_clinic()
    for n in range(3):
        await engine.check_in("c1", patient(n), "Fever")

    called = await asyncio.gather(*[engine.call_next("c1") for _ in range(3)])

    assert len({c.id for c in called}) == 3
    with pytest.raises(EmptyQueue):
        await engine.call_next("c1")


class RacingStore(MemoryCheckInRepository):
    """Lets another caller claim the best waiting entry right after every queue read."""

    def __init__(self, steals):
        super().__init__()
        self.steals = steals

    async def find(self, *args, **kwargs):
        results = await super().find(*args, **kwargs)
        waiting = [e for e in results if e.status == CheckInStatus.WAITING]
        if self.steals and waiting and kwargs.get("day"):
            self.steals -= 1
            best = min(waiting, key=lambda e: e.queue_position)
            await self.update_status(best.id, CheckInStatus.WAITING, {"status": "called"})
        return results


async def test_call_next_retries_after_losing_a_race(add_clinic, clinics, clock, patient):
    add_clinic()
    store = RacingStore(steals=1)
    engine = QueueEngine(store, clinics, clock=clock, tz="UTC", call_next_retries=3)
    first = await engine.check_in("c1", patient(1), "Fever")
    second = await engine.check_in("c1", patient(2), "Fever")

    called = await engine.call_next("c1")

    assert called.id == second.id
    assert (await store.find_by_id(first.id)).status == CheckInStatus.CALLED


async def test_call_next_gives_up_with_already_claimed(add_clinic, clinics, clock, patient):
    add_clinic()
    store = RacingStore(steals=10)
    engine = QueueEngine(store, clinics, clock=clock, tz="UTC", call_next_retries=1)
    for n in range(5):
        await engine.check_in("c1", patient(n), "Fever")

    with pytest.raises(AlreadyClaimed):
        await engine.call_next("c1")


# ---------------------------------------------------------------------------
# Status updates and cancellation
# ---------------------------------------------------------------------------

async def test_full_visit_lifecycle(engine, add_clinic, clinics, clock, patient, events):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")

    clock.advance(minutes=10)
    await engine.update_status(entry.id, CheckInStatus.CALLED)
    clock.advance(minutes=12, seconds=24)
    in_service = await engine.update_status(entry.id, CheckInStatus.IN_SERVICE)
    clock.advance(minutes=20)
    done = await engine.update_status(entry.id, CheckInStatus.COMPLETED)

    assert in_service.actual_wait_time == 22
    assert done.status == CheckInStatus.COMPLETED
    assert done.service_end_time == clock.now
    assert done.actual_wait_time == round(
        (done.service_start_time - done.check_in_time).total_seconds() / 60
    )

    clinic = await clinics.get_clinic("c1")
    assert clinic.current_queue_size == 0
    assert clinic.statistics.total_patients_served == 1

    changes = [e[2] for e in events.of_type(QueueEventType.STATUS_CHANGED)]
    assert [(c["old_status"], c["new_status"]) for c in changes] == [
        ("waiting", "called"),
        ("called", "in-service"),
        ("in-service", "completed"),
    ]


async def test_skipping_states_is_invalid(engine, add_clinic, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    with pytest.raises(InvalidTransition):
        await engine.update_status(entry.id, CheckInStatus.COMPLETED)


async def test_repeating_a_transition_keeps_first_timestamp(engine, add_clinic, clock, patient, events):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    called = await engine.update_status(entry.id, "called")

    clock.advance(minutes=30)
    again = await engine.update_status(entry.id, "called")

    assert again.called_time == called.called_time
    assert len(events.of_type(QueueEventType.STATUS_CHANGED)) == 1


async def test_completed_twice_keeps_counters(engine, add_clinic, clinics, clock, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    for status in ("called", "in-service", "completed"):
        await engine.update_status(entry.id, status)

    clock.advance(minutes=5)
    again = await engine.update_status(entry.id, "completed")

    clinic = await clinics.get_clinic("c1")
    assert clinic.statistics.total_patients_served == 1
    assert clinic.current_queue_size == 0
    assert again.service_end_time < clock.now


async def test_unknown_status_and_unknown_check_in(engine):
    with pytest.raises(ValidationError):
        await engine.update_status("x", "teleported")
    with pytest.raises(CheckInNotFound):
        await engine.update_status("x", "called")


async def test_stale_update_is_a_conflict(engine, add_clinic, check_ins, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")

    original_find = check_ins.find_by_id

    async def stale_find(check_in_id):
        found = await original_find(check_in_id)
        # someone else calls the patient between our read and our write
        await check_ins.update_status(check_in_id, CheckInStatus.WAITING, {"status": "called"})
        return found

    check_ins.find_by_id = stale_find
    with pytest.raises(TransitionConflict):
        await engine.update_status(entry.id, "cancelled")


async def test_cancel_waiting_entry(engine, add_clinic, clinics, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    await engine.check_in("c1", patient(2), "Fever")
    before = await active_counter(clinics)

    cancelled = await engine.cancel(entry.id)

    assert cancelled.status == CheckInStatus.CANCELLED
    assert await active_counter(clinics) == before - 1

    for target in ("waiting", "called", "in-service", "completed", "no-show"):
        with pytest.raises(InvalidTransition):
            await engine.update_status(entry.id, target)


async def test_cancel_called_entry(engine, add_clinic, clinics, patient):
    add_clinic()
    await engine.check_in("c1", patient(1), "Fever")
    called = await engine.call_next("c1")

    await engine.cancel(called.id)

    assert await active_counter(clinics) == 0


async def test_cannot_cancel_in_service_or_twice(engine, add_clinic, patient):
    add_clinic()
    first = await engine.check_in("c1", patient(1), "Fever")
    second = await engine.check_in("c1", patient(2), "Fever")
    await engine.update_status(first.id, "called")
    await engine.update_status(first.id, "in-service")
    await engine.cancel(second.id)

    with pytest.raises(InvalidTransition):
        await engine.cancel(first.id)
    with pytest.raises(InvalidTransition):
        await engine.cancel(second.id)


async def test_no_show_leaves_queue(engine, add_clinic, clinics, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    await engine.call_next("c1")
    await engine.update_status(entry.id, "no-show")
    assert await active_counter(clinics) == 0


async def test_counter_matches_active_entries(engine, add_clinic, clinics, check_ins, patient):
    add_clinic()
    ids = [(await engine.check_in("c1", patient(n), "Fever")).id for n in range(6)]

    await engine.call_next("c1")
    await engine.cancel(ids[1])
    await engine.update_status(ids[0], "in-service")
    await engine.update_status(ids[0], "completed")
    called = await engine.call_next("c1")
    await engine.update_status(called.id, "no-show")
    await engine.call_next("c1")

    assert await active_counter(clinics) == await check_ins.count_active_by_clinic_day("c1", "2026-03-02")
    assert await active_counter(clinics) == 3


# ---------------------------------------------------------------------------
# Position and snapshot
# ---------------------------------------------------------------------------

async def test_position_of_reflects_priority(engine, add_clinic, patient):
    add_clinic(avg_wait_time=10)
    p1 = await engine.check_in("c1", patient(1), "Fever", priority="normal")
    p2 = await engine.check_in("c1", patient(2), "Fall", priority="high")
    p3 = await engine.check_in("c1", patient(3), "Rash", priority="normal")

    positions = {e.id: await engine.position_of(e.id) for e in (p1, p2, p3)}

    assert positions[p2.id].current_rank == 1
    assert positions[p1.id].current_rank == 2
    assert positions[p3.id].current_rank == 3
    assert positions[p3.id].original_position == 3
    assert positions[p3.id].estimated_wait_time == 30


async def test_position_of_after_leaving_queue(engine, add_clinic, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    await engine.cancel(entry.id)

    position = await engine.position_of(entry.id)

    assert position.current_rank is None
    assert position.original_position == 1
    assert position.status == CheckInStatus.CANCELLED


async def test_snapshot_is_rebuilt_from_entries(engine, add_clinic, clock, patient):
    add_clinic()
    a = await engine.check_in("c1", patient(1), "Fever")
    b = await engine.check_in("c1", patient(2), "Fall", priority="emergency")
    c = await engine.check_in("c1", patient(3), "Rash")
    d = await engine.check_in("c1", patient(4), "Cough")

    clock.advance(minutes=8)
    await engine.call_next("c1")                   # b
    await engine.update_status(b.id, "in-service")
    await engine.update_status(b.id, "completed")
    await engine.cancel(d.id)

    snapshot = await engine.snapshot("c1")

    assert snapshot.day == "2026-03-02"
    assert snapshot.queue_size == 2
    assert [e.check_in_id for e in snapshot.current_queue] == [a.id, c.id]
    assert [e.rank for e in snapshot.current_queue] == [1, 2]
    assert snapshot.served_today == 1
    assert snapshot.average_wait_time == 8


async def test_snapshot_excludes_other_days(engine, add_clinic, clock, patient):
    add_clinic()
    await engine.check_in("c1", patient(1), "Fever")
    clock.advance(days=1)

    assert (await engine.snapshot("c1")).queue_size == 0
    assert (await engine.snapshot("c1", day="2026-03-02")).queue_size == 1


async def test_directory_counter_helpers(engine, add_clinic, clinics, check_ins, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")

    await clinics.decrement_active_queue("c1")
    await clinics.increment_served_count("c1")

    clinic = await clinics.get_clinic("c1")
    assert clinic.current_queue_size == 0
    assert clinic.statistics.total_patients_served == 1
    active = await check_ins.find_active_by_clinic_day("c1", "2026-03-02")
    assert [e.id for e in active] == [entry.id]


async def test_reservation_failure_reports_deactivated_clinic(engine, add_clinic, clinics, patient):
    add_clinic()
    reserve = clinics.try_reserve_slot

    async def deactivated_meanwhile(clinic_id):
        clinics.clinics[clinic_id].is_active = False
        return await reserve(clinic_id)

    clinics.try_reserve_slot = deactivated_meanwhile

    with pytest.raises(ClinicInactive):
        await engine.check_in("c1", patient(1), "Fever")


# ---------------------------------------------------------------------------
# Counter failures
# ---------------------------------------------------------------------------

async def test_counter_failure_reverts_cancel(engine, add_clinic, clinics, check_ins, patient, events):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    adjust = clinics.adjust_counters

    async def store_down(*args, **kwargs):
        raise DependencyError("counters unavailable")

    clinics.adjust_counters = store_down
    with pytest.raises(DependencyError):
        await engine.cancel(entry.id)

    reverted = await check_ins.find_by_id(entry.id)
    assert reverted.status == CheckInStatus.WAITING
    assert reverted.updated_at is None
    assert await active_counter(clinics) == 1
    assert events.of_type(QueueEventType.STATUS_CHANGED) == []

    clinics.adjust_counters = adjust
    await engine.cancel(entry.id)
    assert await active_counter(clinics) == 0


async def test_counter_failure_reverts_completion_timestamps(engine, add_clinic, clinics, check_ins, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    await engine.update_status(entry.id, "called")
    await engine.update_status(entry.id, "in-service")

    async def store_down(*args, **kwargs):
        raise DependencyError("counters unavailable")

    clinics.adjust_counters = store_down
    with pytest.raises(DependencyError):
        await engine.update_status(entry.id, "completed")

    reverted = await check_ins.find_by_id(entry.id)
    assert reverted.status == CheckInStatus.IN_SERVICE
    assert reverted.service_end_time is None
    assert await active_counter(clinics) == 1
    assert (await clinics.get_clinic("c1")).statistics.total_patients_served == 0


# ---------------------------------------------------------------------------
# Clinic-day rollover
# ---------------------------------------------------------------------------

async def test_leftover_waiting_entry_frees_its_slot_next_day(engine, add_clinic, clinics, check_ins, clock, patient, events):
    add_clinic(max_queue_size=1)
    yesterday = await engine.check_in("c1", patient(1), "Fever")

    clock.advance(days=1)
    today = await engine.check_in("c1", patient(2), "Cough")

    assert today.queue_position == 1
    assert (await check_ins.find_by_id(yesterday.id)).status == CheckInStatus.CANCELLED
    assert await active_counter(clinics) == 1
    assert await check_ins.count_active_by_clinic_day("c1", "2026-03-03") == 1

    closed = [e[2] for e in events.of_type(QueueEventType.STATUS_CHANGED)]
    assert closed == [{
        "check_in_id": yesterday.id,
        "old_status": "waiting",
        "new_status": "cancelled",
        "reason": "day-closed",
    }]


async def test_leftover_called_entry_becomes_no_show(engine, add_clinic, clinics, check_ins, clock, patient):
    add_clinic()
    first = await engine.check_in("c1", patient(1), "Fever")
    second = await engine.check_in("c1", patient(2), "Fever")
    await engine.call_next("c1")

    clock.advance(days=1)
    with pytest.raises(EmptyQueue):
        await engine.call_next("c1")

    assert (await check_ins.find_by_id(first.id)).status == CheckInStatus.NO_SHOW
    assert (await check_ins.find_by_id(second.id)).status == CheckInStatus.CANCELLED
    assert await active_counter(clinics) == 0


async def test_leftover_in_service_entry_is_kept(engine, add_clinic, clinics, check_ins, clock, patient):
    add_clinic()
    entry = await engine.check_in("c1", patient(1), "Fever")
    await engine.call_next("c1")
    await engine.update_status(entry.id, "in-service")

    clock.advance(days=1)
    closed = await engine.close_stale_entries("c1")

    assert closed == []
    assert (await check_ins.find_by_id(entry.id)).status == CheckInStatus.IN_SERVICE
    assert await active_counter(clinics) == 1


async def test_locks_are_per_clinic(engine, add_clinic, check_ins, patient):
    add_clinic()
    for n in range(5):
        entry = await engine.check_in("c1", patient(n), "Fever")
        await engine.cancel(entry.id)

    assert list(check_ins._locks) == ["c1"]
