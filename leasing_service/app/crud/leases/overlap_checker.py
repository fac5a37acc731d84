from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from ...enum.leasing_enum import LeaseStatus
from .lease_lifecycle import is_due_for_expiry


def intervals_overlap(s1: date, e1: date, s2: date, e2: date) -> bool:
    """Half-open overlap: [s1, e1) and [s2, e2) share at least one instant.

    Back-to-back intervals (e1 == s2) do not overlap.
    """
    return s1 < e2 and s2 < e1


def _competes(lease, unit_id: UUID, exclude_lease_id: Optional[UUID], today: Optional[date]) -> bool:
    if lease.unit_id != unit_id:
        return False
    if exclude_lease_id is not None and lease.id == exclude_lease_id:
        return False
    if lease.deleted_at is not None:
        return False
    if today is not None and is_due_for_expiry(lease.status, lease.end_date, today):
        return False
    return LeaseStatus(lease.status) == LeaseStatus.active


def find_conflict(
    unit_id: UUID,
    start: date,
    end: date,
    existing: Iterable,
    exclude_lease_id: Optional[UUID] = None,
    today: Optional[date] = None,
):
    """Return the earliest active lease on ``unit_id`` overlapping [start, end), or None.

    With ``today``, leases whose end has already passed no longer compete,
    even if the sweep has not marked them expired yet.
    """
    candidates = sorted(
        (lease for lease in existing if _competes(lease, unit_id, exclude_lease_id, today)),
        key=lambda lease: lease.start_date,
    )
    for lease in candidates:
        if intervals_overlap(start, end, lease.start_date, lease.end_date):
            return lease
    return None


def conflicts(
    unit_id: UUID,
    start: date,
    end: date,
    existing: Iterable,
    exclude_lease_id: Optional[UUID] = None,
    today: Optional[date] = None,
) -> bool:
    return find_conflict(unit_id, start, end, existing, exclude_lease_id, today) is not None
