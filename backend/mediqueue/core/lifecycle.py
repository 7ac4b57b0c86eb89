"""
Check-in state machine.

    waiting -> called -> in-service -> completed
    waiting -> cancelled
    called  -> cancelled | no-show

Planning a transition is pure: it returns the field updates and counter
effects, and the engine applies them with a conditional write.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.check_in import CheckIn, CheckInStatus
from .errors import InvalidTransition


@dataclass(frozen=True)
class Transition:
    source: CheckInStatus
    target: CheckInStatus
    timestamp_field: Optional[str] = None
    active_delta: int = 0
    served_delta: int = 0


TRANSITIONS = {
    (t.source, t.target): t
    for t in (
        Transition(CheckInStatus.WAITING, CheckInStatus.CALLED, "called_time"),
        Transition(CheckInStatus.WAITING, CheckInStatus.CANCELLED, active_delta=-1),
        Transition(CheckInStatus.CALLED, CheckInStatus.IN_SERVICE, "service_start_time"),
        Transition(CheckInStatus.CALLED, CheckInStatus.CANCELLED, active_delta=-1),
        Transition(CheckInStatus.CALLED, CheckInStatus.NO_SHOW, active_delta=-1),
        Transition(
            CheckInStatus.IN_SERVICE, CheckInStatus.COMPLETED, "service_end_time",
            active_delta=-1, served_delta=1
        ),
    )
}


@dataclass
class TransitionPlan:
    """Outcome of planning a status change for one check-in."""
    source: CheckInStatus
    target: CheckInStatus
    updates: Dict[str, Any] = field(default_factory=dict)
    active_delta: int = 0
    served_delta: int = 0

    @property
    def is_noop(self) -> bool:
        return self.source == self.target


def wait_minutes(check_in_time: datetime, service_start_time: datetime) -> int:
    """Whole minutes between check-in and service start, rounded half up."""
    seconds = (service_start_time - check_in_time).total_seconds()
    return int(math.floor(seconds / 60 + 0.5))


def can_transition(source: CheckInStatus, target: CheckInStatus) -> bool:
    return (source, target) in TRANSITIONS


def plan_transition(entry: CheckIn, target: CheckInStatus, now: datetime) -> TransitionPlan:
    """Work out what moving ``entry`` to ``target`` changes.

    Re-applying the current status is a no-op: timestamps keep their first
    value and no counters move.
    """
    if entry.status == target:
        return TransitionPlan(source=entry.status, target=target)

    transition = TRANSITIONS.get((entry.status, target))
    if transition is None:
        raise InvalidTransition(
            f"Cannot move check-in {entry.id} from '{entry.status.value}' to '{target.value}'"
        )

    updates: Dict[str, Any] = {"status": target.value, "updated_at": now}

    stamp = transition.timestamp_field
    if stamp and getattr(entry, stamp) is None:
        updates[stamp] = now

    if target == CheckInStatus.IN_SERVICE and entry.actual_wait_time is None:
        started = updates.get("service_start_time", entry.service_start_time)
        updates["actual_wait_time"] = wait_minutes(entry.check_in_time, started)

    return TransitionPlan(
        source=entry.status,
        target=target,
        updates=updates,
        active_delta=transition.active_delta,
        served_delta=transition.served_delta,
    )
