"""Lease state machine.

    active ──(sweep, today >= end_date)──> expired
    active ──(cancel)────────────────────> cancelled

``expired`` and ``cancelled`` are terminal. Soft deletion (``deleted_at``) is
tracked separately and never read as a status.
"""
from datetime import date

from ...core.exceptions import InvalidTransition
from ...enum.leasing_enum import LeaseStatus

TERMINAL_STATUSES = frozenset({LeaseStatus.expired, LeaseStatus.cancelled})


def is_due_for_expiry(stored_status, end_date: date, today: date) -> bool:
    # end_date is the exclusive bound, so the lease is over once today reaches it
    return LeaseStatus(stored_status) == LeaseStatus.active and end_date <= today


def effective_status(lease, today: date) -> LeaseStatus:
    """Status as the caller should see it, without persisting anything."""
    if is_due_for_expiry(lease.status, lease.end_date, today):
        return LeaseStatus.expired
    return LeaseStatus(lease.status)


def is_terminal(status) -> bool:
    return LeaseStatus(status) in TERMINAL_STATUSES


def check_transition(current, target, *, today: date, end_date: date, by_system: bool = False) -> bool:
    """Validate ``current -> target``.

    Returns True when the status actually changes, False for a no-op.
    Raises InvalidTransition for anything the state machine does not allow.
    """
    current = LeaseStatus(current)
    target = LeaseStatus(target)

    if current == target:
        return False

    if current in TERMINAL_STATUSES:
        raise InvalidTransition(
            f"Lease is {current.value}; no transition to {target.value} is allowed")

    if target == LeaseStatus.expired:
        if not by_system:
            raise InvalidTransition(
                "Leases expire on their end date; status 'expired' cannot be set directly")
        if today < end_date:
            raise InvalidTransition(
                f"Lease cannot expire before its end date {end_date.isoformat()}")
        return True

    if target == LeaseStatus.cancelled:
        return True

    raise InvalidTransition(
        f"Transition {current.value} -> {target.value} is not allowed")
