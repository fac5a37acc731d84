import logging
import math
import re
import secrets
import unicodedata
from datetime import date, datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from shared.core.config import settings
from ...core.clock import make_today
from ...core.exceptions import (
    AccessDenied, Busy, InvalidTransition, LeaseValidationError, NotFound, OverlapConflict,
)
from ...enum.leasing_enum import CallerRole, LeaseEvent, LeaseStatus
from ...models.leases import Lease
from ...schemas.leases_schemas import (
    CallerScope, CancelResult, LeaseCreate, LeaseListResponse, LeaseOut, LeaseRequest, LeaseUpdate,
)
from .collaborators import EventSink, TenantDirectory, UnitDirectory
from .interval_store import LeaseStore, read_session, run_in_transaction
from .lease_lifecycle import check_transition, effective_status, is_terminal
from .overlap_checker import find_conflict

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 5
MAX_TENANT_SEGMENT = 40
EDITABLE_FIELDS = ("tenant_id", "start_date", "end_date", "amount")


def normalize_tenant_name(name: Optional[str]) -> str:
    ascii_name = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode()
    cleaned = re.sub(r"[^A-Z0-9]+", "-", ascii_name.upper()).strip("-")
    return cleaned[:MAX_TENANT_SEGMENT].rstrip("-") or "TENANT"


def generate_reference(tenant_name: Optional[str]) -> str:
    """LEASE-<NORMALIZED-TENANT-NAME>-<8-HEX>"""
    return f"LEASE-{normalize_tenant_name(tenant_name)}-{secrets.token_hex(4).upper()}"


def to_lease_out(lease: Lease, today: date) -> LeaseOut:
    return LeaseOut.model_validate(
        {
            **lease.__dict__,
            "status": effective_status(lease, today),
            "stored_status": lease.status,
        }
    )


def event_payload(lease: LeaseOut) -> dict:
    return lease.model_dump(
        mode="json",
        include={"id", "reference", "unit_id", "tenant_id", "start_date", "end_date", "amount", "status"},
    )


class LeaseAllocationEngine:
    """Creates, updates, cancels and reads leases without ever double-booking a unit.

    Every write runs in one transaction that first takes the unit lock, then
    reads the unit's active leases, checks for overlap and writes. Events are
    emitted after commit and never affect the outcome of the operation.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        units: UnitDirectory,
        tenants: TenantDirectory,
        events: EventSink,
        *,
        store: Optional[LeaseStore] = None,
        today: Optional[Callable[[], date]] = None,
        max_retries: int = settings.LEASE_TX_RETRIES,
        default_page_size: int = settings.DEFAULT_PAGE_SIZE,
        max_page_size: int = settings.MAX_PAGE_SIZE,
    ):
        self.session_factory = session_factory
        self.units = units
        self.tenants = tenants
        self.events = events
        self.store = store or LeaseStore(settings.LEASE_LOCK_TIMEOUT_MS)
        self.today = today or make_today()
        self.max_retries = max_retries
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ----------------------------------------------------
    # Helpers
    # ----------------------------------------------------
    def _transaction(self, work):
        return run_in_transaction(self.session_factory, work, retries=self.max_retries)

    def _emit(self, event: LeaseEvent, lease: LeaseOut):
        try:
            self.events.emit(event.value, event_payload(lease))
        except Exception:
            logger.exception("Failed to emit %s for lease %s", event.value, lease.id)

    def _authorize(self, caller: CallerScope, unit_id: UUID, *, require_unit: bool = False):
        if caller.role == CallerRole.employee:
            raise AccessDenied("Access restricted to managers or admins.")
        if caller.role == CallerRole.admin and not require_unit:
            return
        unit = self.units.resolve_unit(unit_id)
        if caller.role == CallerRole.manager and unit.property_id not in caller.property_ids:
            raise AccessDenied("Access denied: You are not assigned to this property.")

    def _lease_unit(self, lease_id: UUID, include_deleted: bool = False) -> UUID:
        with read_session(self.session_factory) as db:
            lease = self.store.get(db, lease_id, include_deleted=include_deleted)
            if lease is None:
                raise NotFound(f"Lease {lease_id} not found")
            return lease.unit_id

    @staticmethod
    def _validate_interval(start: date, end: date, amount=None):
        if start >= end:
            raise LeaseValidationError("start_date must be before end_date")
        if amount is not None and amount < 0:
            raise LeaseValidationError("amount must not be negative")

    @staticmethod
    def _validate_not_past(end: date, today: date):
        if end <= today:
            raise LeaseValidationError(
                f"end_date {end.isoformat()} is not in the future; the lease would already be expired")

    def _unique_reference(self, db: Session, tenant_name: Optional[str]) -> str:
        for _ in range(REFERENCE_ATTEMPTS):
            reference = generate_reference(tenant_name)
            if not self.store.reference_exists(db, reference):
                return reference
        raise Busy("Could not allocate a unique lease reference, retry shortly")

    # ----------------------------------------------------
    # Create
    # ----------------------------------------------------
    def create_lease(self, payload: LeaseCreate, caller: CallerScope) -> LeaseOut:
        today = self.today()

        if payload.status not in (None, LeaseStatus.active):
            raise LeaseValidationError("New leases always start as 'active'")
        self._validate_interval(payload.start_date, payload.end_date, payload.amount)
        self._validate_not_past(payload.end_date, today)

        self._authorize(caller, payload.unit_id, require_unit=True)
        if not self.tenants.tenant_exists(payload.tenant_id):
            raise NotFound(f"Tenant {payload.tenant_id} not found")
        tenant_name = self.tenants.tenant_name(payload.tenant_id)

        def work(db: Session) -> LeaseOut:
            self.store.lock_unit(db, payload.unit_id)
            clash = find_conflict(
                payload.unit_id,
                payload.start_date,
                payload.end_date,
                self.store.active_leases_for_unit(db, payload.unit_id, today),
                today=today,
            )
            if clash is not None:
                logger.warning("Rejected lease on unit %s: [%s, %s) overlaps %s",
                               payload.unit_id, payload.start_date, payload.end_date, clash.reference)
                raise OverlapConflict(
                    f"Unit is already leased from {clash.start_date.isoformat()} to {clash.end_date.isoformat()}",
                    clash,
                )

            lease = Lease(
                reference=self._unique_reference(db, tenant_name),
                unit_id=payload.unit_id,
                tenant_id=payload.tenant_id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                amount=payload.amount,
                status=LeaseStatus.active.value,
            )
            self.store.add(db, lease)
            db.refresh(lease)
            return to_lease_out(lease, today)

        lease = self._transaction(work)
        logger.info("Lease %s created on unit %s [%s, %s)",
                    lease.reference, lease.unit_id, lease.start_date, lease.end_date)
        self._emit(LeaseEvent.created, lease)
        return lease

    # ----------------------------------------------------
    # Update
    # ----------------------------------------------------
    def update_lease(self, lease_id: UUID, payload: LeaseUpdate, caller: CallerScope) -> LeaseOut:
        """Apply a partial update.

        Setting ``status=cancelled`` here changes the status only and keeps the
        lease visible; ``cancel_lease`` also soft-deletes it.
        """
        today = self.today()
        data = payload.model_dump(exclude_unset=True)
        if not data:
            raise LeaseValidationError("No valid fields provided for update")
        for field, value in data.items():
            if value is None:
                raise LeaseValidationError(f"{field} cannot be cleared")

        unit_id = self._lease_unit(lease_id)
        if data.pop("unit_id", unit_id) != unit_id:
            raise LeaseValidationError(
                "unit_id cannot be changed; cancel this lease and create a new one")
        self._authorize(caller, unit_id)
        if "tenant_id" in data and not self.tenants.tenant_exists(data["tenant_id"]):
            raise NotFound(f"Tenant {data['tenant_id']} not found")

        def work(db: Session):
            self.store.lock_unit(db, unit_id)
            lease = self.store.get(db, lease_id, for_update=True)
            if lease is None:
                raise NotFound(f"Lease {lease_id} not found")

            current = effective_status(lease, today)
            target = LeaseStatus(data.get("status", current))
            edits = {
                field: data[field]
                for field in EDITABLE_FIELDS
                if field in data and getattr(lease, field) != data[field]
            }

            if is_terminal(current) and edits:
                raise InvalidTransition(
                    f"Lease is {current.value}; its dates, amount and tenant can no longer change")
            status_changes = check_transition(current, target, today=today, end_date=lease.end_date)

            start = edits.get("start_date", lease.start_date)
            end = edits.get("end_date", lease.end_date)
            self._validate_interval(start, end, edits.get("amount"))

            if ("start_date" in edits or "end_date" in edits) and target == LeaseStatus.active:
                self._validate_not_past(end, today)
                clash = find_conflict(
                    unit_id, start, end,
                    self.store.active_leases_for_unit(db, unit_id, today),
                    exclude_lease_id=lease.id,
                    today=today,
                )
                if clash is not None:
                    logger.warning("Rejected update of %s: [%s, %s) overlaps %s",
                                   lease.reference, start, end, clash.reference)
                    raise OverlapConflict(
                        f"Unit is already leased from {clash.start_date.isoformat()} to {clash.end_date.isoformat()}",
                        clash,
                    )

            if not edits and not status_changes:
                return to_lease_out(lease, today), False

            for field, value in edits.items():
                setattr(lease, field, value)
            if status_changes:
                lease.status = target.value
            db.flush()
            db.refresh(lease)
            return to_lease_out(lease, today), True

        lease, changed = self._transaction(work)
        if changed:
            logger.info("Lease %s updated", lease.reference)
            self._emit(LeaseEvent.updated, lease)
        return lease

    # ----------------------------------------------------
    # Cancel (soft delete)
    # ----------------------------------------------------
    def cancel_lease(self, lease_id: UUID, caller: CallerScope) -> CancelResult:
        today = self.today()
        unit_id = self._lease_unit(lease_id, include_deleted=True)
        self._authorize(caller, unit_id)

        def work(db: Session):
            self.store.lock_unit(db, unit_id)
            lease = self.store.get(db, lease_id, include_deleted=True, for_update=True)
            if lease is None:
                raise NotFound(f"Lease {lease_id} not found")

            changed = check_transition(
                effective_status(lease, today), LeaseStatus.cancelled,
                today=today, end_date=lease.end_date,
            )
            if changed:
                lease.status = LeaseStatus.cancelled.value
            if lease.deleted_at is None:
                lease.deleted_at = datetime.now(timezone.utc)
            db.flush()
            db.refresh(lease)
            return to_lease_out(lease, today), changed

        lease, changed = self._transaction(work)
        if changed:
            logger.info("Lease %s cancelled", lease.reference)
            self._emit(LeaseEvent.cancelled, lease)
        return CancelResult(lease_id=lease.id, status=lease.status, already_cancelled=not changed)

    # ----------------------------------------------------
    # Reads
    # ----------------------------------------------------
    def _with_parties(self, leases: List[LeaseOut]) -> List[LeaseOut]:
        if not leases:
            return leases
        locals_by_id = self.units.describe_units({lease.unit_id for lease in leases})
        tenants_by_id = self.tenants.describe_tenants({lease.tenant_id for lease in leases})
        return [
            lease.model_copy(update={
                "local": locals_by_id.get(lease.unit_id),
                "tenant": tenants_by_id.get(lease.tenant_id),
            })
            for lease in leases
        ]

    def get_lease(self, lease_id: UUID) -> LeaseOut:
        today = self.today()
        with read_session(self.session_factory) as db:
            lease = self.store.get(db, lease_id)
            if lease is None:
                raise NotFound(f"Lease {lease_id} not found")
            out = to_lease_out(lease, today)
        return self._with_parties([out])[0]

    def list_leases(self, params: LeaseRequest) -> LeaseListResponse:
        today = self.today()
        page_size = min(params.page_size or self.default_page_size, self.max_page_size)

        with read_session(self.session_factory) as db:
            rows, total = self.store.query(db, params, today, page_size)
            leases = [to_lease_out(row, today) for row in rows]

        return LeaseListResponse(
            leases=self._with_parties(leases),
            total=total,
            page=params.page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )
