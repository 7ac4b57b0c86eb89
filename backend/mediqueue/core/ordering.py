"""
Queue ordering: creation-order positions, live rank and call-next selection.

One sort key decides both who gets called next and how many people are
ahead of a given check-in, so the rank shown to a patient always matches the
order staff will call them in.
"""

from typing import Iterable, List, Optional, Tuple

from ..models.check_in import CheckIn, CheckInPriority, CheckInStatus, QUEUED_STATUSES
from .errors import EmptyQueue

PRIORITY_RANK = {
    CheckInPriority.EMERGENCY: 3,
    CheckInPriority.HIGH: 2,
    CheckInPriority.NORMAL: 1,
    CheckInPriority.LOW: 0,
}


def sort_key(entry: CheckIn) -> Tuple[int, int]:
    """Higher priority first, then earlier queue position."""
    return (-PRIORITY_RANK[entry.priority], entry.queue_position)


def order_entries(entries: Iterable[CheckIn]) -> List[CheckIn]:
    return sorted(entries, key=sort_key)


async def next_position(repository, clinic_id: str, day: str) -> int:
    """Allocate the next creation-order position for a clinic-day.

    The repository hands out values from a per clinic-day sequence, so two
    concurrent check-ins never share a position.
    """
    return await repository.next_position(clinic_id, day)


def rank(entry: CheckIn, active_entries: Iterable[CheckIn]) -> Optional[int]:
    """1-based rank among waiting/called entries, or None if not queued."""
    if entry.status not in QUEUED_STATUSES:
        return None
    key = sort_key(entry)
    ahead = sum(
        1 for other in active_entries
        if other.id != entry.id
        and other.status in QUEUED_STATUSES
        and sort_key(other) < key
    )
    return ahead + 1


def select_next(entries: Iterable[CheckIn]) -> CheckIn:
    """Pick the waiting entry that should be called next."""
    waiting = [e for e in entries if e.status == CheckInStatus.WAITING]
    if not waiting:
        raise EmptyQueue()
    return min(waiting, key=sort_key)
