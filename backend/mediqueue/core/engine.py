"""
Queue engine: check-in, call-next, status updates, cancellation and rank.

The engine owns no storage. It coordinates the check-in repository, the
clinic directory's counters and the event sink, and keeps every operation
all-or-nothing from the caller's point of view.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union
from zoneinfo import ZoneInfo

from ..config import get_settings
from ..models.check_in import (
    ACTIVE_STATUSES,
    QUEUED_STATUSES,
    CheckIn,
    CheckInPriority,
    CheckInStatus,
    DeviceInfo,
    LocationData,
    LocationProof,
    PatientRef,
)
from ..models.clinic import Clinic
from ..models.queue import ClinicQueueSnapshot, QueueEventType, QueuePosition, QueueSnapshotEntry
from . import lifecycle, ordering
from .errors import AlreadyClaimed, CheckInNotFound, ClinicNotFound, InvalidTransition, QueueFull, TransitionConflict, ValidationError
from .estimator import estimate_wait
from .events import EventSink, NullEventSink
from .geo import verify_location

logger = logging.getLogger(__name__)

# Where an entry still queued at the end of its clinic-day ends up
STALE_TARGETS = {
    CheckInStatus.WAITING: CheckInStatus.CANCELLED,
    CheckInStatus.CALLED: CheckInStatus.NO_SHOW,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_check_in_id() -> str:
    return uuid.uuid4().hex[:8]


class QueueEngine:
    """Composition root of the walk-in queue."""

    def __init__(
        self,
        check_ins,
        clinics,
        events: Optional[EventSink] = None,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[str] = None,
        call_next_retries: Optional[int] = None
    ):
        settings = get_settings()
        self.check_ins = check_ins
        self.clinics = clinics
        self.events = events or NullEventSink()
        self.clock = clock
        self.tz = ZoneInfo(tz or settings.CLINIC_TIMEZONE)
        self.call_next_retries = (
            settings.CALL_NEXT_MAX_RETRIES if call_next_retries is None else call_next_retries
        )

    def clinic_day(self, moment: Optional[datetime] = None) -> str:
        """Local calendar day (YYYY-MM-DD) that ``moment`` falls on."""
        moment = moment or self.clock()
        return moment.astimezone(self.tz).date().isoformat()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def check_in(
        self,
        clinic_id: str,
        patient: PatientRef,
        visit_reason: str,
        priority: Union[CheckInPriority, str] = CheckInPriority.NORMAL,
        location: Optional[LocationProof] = None,
        has_appointment: bool = False,
        appointment_time: Optional[datetime] = None,
        device_info: Optional[DeviceInfo] = None,
        notes: Optional[str] = None
    ) -> CheckIn:
        """Admit a patient to the clinic's queue for today."""
        if not visit_reason or not visit_reason.strip():
            raise ValidationError("Visit reason is required")
        try:
            priority = CheckInPriority(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority '{priority}'")

        clinic = await self.clinics.get_active_clinic(clinic_id)
        await self.close_stale_entries(clinic_id)

        # Capacity check and counter increment are one conditional write
        if not await self.clinics.try_reserve_slot(clinic_id):
            # The clinic may have been deactivated or removed since it was read
            clinic = await self.clinics.get_active_clinic(clinic_id)
            raise QueueFull(f"Queue for clinic {clinic_id} is full ({clinic.max_queue_size} patients)")

        try:
            now = self.clock()
            day = self.clinic_day(now)
            position = await ordering.next_position(self.check_ins, clinic_id, day)
            entry = CheckIn(
                _id=new_check_in_id(),
                clinic_id=clinic_id,
                patient_id=patient.id,
                patient_name=patient.name,
                clinic_day=day,
                queue_position=position,
                status=CheckInStatus.WAITING,
                priority=priority,
                visit_reason=visit_reason.strip(),
                has_appointment=has_appointment,
                appointment_time=appointment_time,
                check_in_time=now,
                estimated_wait_time=estimate_wait(position, clinic.avg_wait_time),
                location_data=self._locate(clinic, location, now),
                device_info=device_info,
                notes=notes,
                created_at=now
            )
            await self.check_ins.create(entry)
        except Exception:
            await self._release_slot(clinic_id)
            raise

        logger.info(
            "Checked in %s at clinic %s: position %d, priority %s",
            entry.id, clinic_id, position, priority.value
        )
        await self._publish(clinic_id, QueueEventType.QUEUE_CHANGED, {
            "type": "new-check-in",
            "check_in_id": entry.id,
            "patient_name": entry.patient_name,
            "position": entry.queue_position,
            "estimated_wait_time": entry.estimated_wait_time
        })
        return entry

    async def update_status(self, check_in_id: str, target: Union[CheckInStatus, str]) -> CheckIn:
        """Move a check-in along its lifecycle.

        Setting the status it already has returns the entry unchanged.
        """
        try:
            target = CheckInStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown status '{target}'")

        entry = await self.get_check_in(check_in_id)
        plan = lifecycle.plan_transition(entry, target, self.clock())
        if plan.is_noop:
            return entry

        updated = await self._apply(entry, plan)
        await self._publish(entry.clinic_id, QueueEventType.STATUS_CHANGED, {
            "check_in_id": entry.id,
            "old_status": plan.source.value,
            "new_status": plan.target.value
        })
        return updated

    async def call_next(self, clinic_id: str) -> CheckIn:
        """Claim the best waiting check-in of today and mark it called."""
        if await self.clinics.get_clinic(clinic_id) is None:
            raise ClinicNotFound(f"Clinic {clinic_id} not found")
        await self.close_stale_entries(clinic_id)

        day = self.clinic_day()
        for attempt in range(self.call_next_retries + 1):
            waiting = await self.check_ins.find(
                clinic_id=clinic_id, day=day, statuses=[CheckInStatus.WAITING]
            )
            candidate = ordering.select_next(waiting)
            plan = lifecycle.plan_transition(candidate, CheckInStatus.CALLED, self.clock())

            claimed = await self.check_ins.update_status(candidate.id, CheckInStatus.WAITING, plan.updates)
            if claimed is not None:
                logger.info("Called %s at clinic %s", claimed.id, clinic_id)
                await self._publish(clinic_id, QueueEventType.PATIENT_CALLED, {
                    "check_in_id": claimed.id,
                    "patient_name": claimed.patient_name,
                    "queue_position": claimed.queue_position
                })
                return claimed

            logger.info(
                "Check-in %s was claimed concurrently (attempt %d), retrying",
                candidate.id, attempt + 1
            )

        raise AlreadyClaimed(f"Could not claim a waiting patient at clinic {clinic_id}")

    async def cancel(self, check_in_id: str) -> CheckIn:
        """Cancel a check-in that is still waiting or called."""
        entry = await self.get_check_in(check_in_id)
        if entry.status not in QUEUED_STATUSES:
            raise InvalidTransition(
                f"Check-in {entry.id} is '{entry.status.value}' and can no longer be cancelled"
            )

        plan = lifecycle.plan_transition(entry, CheckInStatus.CANCELLED, self.clock())
        updated = await self._apply(entry, plan)
        await self._publish(entry.clinic_id, QueueEventType.STATUS_CHANGED, {
            "check_in_id": entry.id,
            "old_status": plan.source.value,
            "new_status": plan.target.value
        })
        return updated

    async def close_stale_entries(self, clinic_id: str) -> List[CheckIn]:
        """Close entries left waiting or called on an earlier clinic-day.

        Waiting entries are cancelled and called entries become no-shows, which
        frees the capacity they still hold. In-service entries are left for
        staff to complete.
        """
        today = self.clinic_day()
        queued = await self.check_ins.find(clinic_id=clinic_id, statuses=QUEUED_STATUSES)

        closed = []
        for entry in queued:
            if entry.clinic_day >= today:
                continue
            target = STALE_TARGETS[entry.status]
            plan = lifecycle.plan_transition(entry, target, self.clock())
            try:
                updated = await self._apply(entry, plan)
            except TransitionConflict:
                # Moved by someone else since it was read
                continue
            closed.append(updated)
            await self._publish(clinic_id, QueueEventType.STATUS_CHANGED, {
                "check_in_id": entry.id,
                "old_status": plan.source.value,
                "new_status": plan.target.value,
                "reason": "day-closed"
            })

        if closed:
            logger.info("Closed %d check-ins left over from earlier days at clinic %s", len(closed), clinic_id)
        return closed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_check_in(self, check_in_id: str) -> CheckIn:
        entry = await self.check_ins.find_by_id(check_in_id)
        if entry is None:
            raise CheckInNotFound(f"Check-in {check_in_id} not found")
        return entry

    async def position_of(self, check_in_id: str) -> QueuePosition:
        entry = await self.get_check_in(check_in_id)
        queued = await self.check_ins.find(
            clinic_id=entry.clinic_id, day=entry.clinic_day, statuses=QUEUED_STATUSES
        )
        current_rank = ordering.rank(entry, queued)

        estimate = None
        if current_rank is not None:
            clinic = await self.clinics.get_clinic(entry.clinic_id)
            avg = clinic.avg_wait_time if clinic else get_settings().DEFAULT_AVG_WAIT_MINUTES
            estimate = estimate_wait(current_rank, avg)

        return QueuePosition(
            check_in_id=entry.id,
            current_rank=current_rank,
            original_position=entry.queue_position,
            status=entry.status,
            estimated_wait_time=estimate
        )

    async def snapshot(self, clinic_id: str, day: Optional[str] = None) -> ClinicQueueSnapshot:
        """Rebuild the clinic-day queue view from its check-ins."""
        day = day or self.clinic_day()
        entries = await self.check_ins.find(clinic_id=clinic_id, day=day)

        active = ordering.order_entries(e for e in entries if e.status in ACTIVE_STATUSES)
        queued = [e for e in active if e.status in QUEUED_STATUSES]
        waits = [e.actual_wait_time for e in entries if e.actual_wait_time is not None]

        return ClinicQueueSnapshot(
            clinic_id=clinic_id,
            day=day,
            queue_size=len(active),
            current_queue=[
                QueueSnapshotEntry(
                    check_in_id=e.id,
                    patient_id=e.patient_id,
                    patient_name=e.patient_name,
                    rank=ordering.rank(e, queued),
                    position=e.queue_position,
                    status=e.status,
                    priority=e.priority,
                    check_in_time=e.check_in_time,
                    estimated_wait_time=e.estimated_wait_time,
                    visit_reason=e.visit_reason
                )
                for e in active
            ],
            served_today=sum(1 for e in entries if e.status == CheckInStatus.COMPLETED),
            average_wait_time=round(sum(waits) / len(waits), 1) if waits else 0,
            last_updated=self.clock()
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _apply(self, entry: CheckIn, plan: lifecycle.TransitionPlan) -> CheckIn:
        updated = await self.check_ins.update_status(entry.id, plan.source, plan.updates)
        if updated is None:
            raise TransitionConflict(
                f"Check-in {entry.id} is no longer '{plan.source.value}'"
            )
        if plan.active_delta or plan.served_delta:
            try:
                await self.clinics.adjust_counters(
                    entry.clinic_id,
                    active_delta=plan.active_delta,
                    served_delta=plan.served_delta
                )
            except Exception:
                await self._revert(entry, plan)
                raise
        logger.info("Check-in %s: %s -> %s", entry.id, plan.source.value, plan.target.value)
        return updated

    async def _revert(self, entry: CheckIn, plan: lifecycle.TransitionPlan) -> None:
        """Put back the fields a transition wrote, if nobody has moved the entry since."""
        restore = {field: getattr(entry, field) for field in plan.updates}
        restore["status"] = plan.source.value
        logger.warning(
            "Counter update failed for check-in %s, reverting %s -> %s",
            entry.id, plan.source.value, plan.target.value
        )
        try:
            reverted = await self.check_ins.update_status(entry.id, plan.target, restore)
        except Exception:
            logger.exception("Could not revert check-in %s to '%s'", entry.id, plan.source.value)
            return
        if reverted is None:
            logger.error("Check-in %s moved again before it could be reverted", entry.id)

    def _locate(
        self, clinic: Clinic, location: Optional[LocationProof], now: datetime
    ) -> Optional[LocationData]:
        """Record the location proof; failing the geofence only marks it unverified."""
        if location is None:
            return None

        verified, distance = False, None
        if clinic.geofence_enabled:
            verified, distance = verify_location(
                location.latitude,
                location.longitude,
                clinic.address.latitude,
                clinic.address.longitude,
                clinic.settings.max_distance_meters
            )
            if not verified:
                logger.info(
                    "Location for clinic %s is %.0fm away, outside the %.0fm geofence",
                    clinic.id, distance, clinic.settings.max_distance_meters
                )

        return LocationData(
            latitude=location.latitude,
            longitude=location.longitude,
            accuracy=location.accuracy,
            timestamp=now,
            verified=verified,
            distance_from_clinic=distance
        )

    async def _release_slot(self, clinic_id: str) -> None:
        logger.warning("Check-in at clinic %s failed, releasing reserved slot", clinic_id)
        try:
            await self.clinics.release_slot(clinic_id)
        except Exception:
            logger.exception("Could not release queue slot for clinic %s", clinic_id)

    async def _publish(self, clinic_id: str, event_type: QueueEventType, payload: dict) -> None:
        try:
            await self.events.publish(clinic_id, event_type, payload)
        except Exception:
            logger.exception("Failed to publish %s for clinic %s", event_type.value, clinic_id)
