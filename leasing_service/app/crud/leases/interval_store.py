import hashlib
import logging
import time
from contextlib import contextmanager
from datetime import date
from typing import Callable, List, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import and_, or_, text, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from shared.core.database import WRITE_TRANSACTION
from ...core.exceptions import Busy, LeaseValidationError
from ...enum.leasing_enum import LeaseStatus
from ...models.leases import Lease
from ...schemas.leases_schemas import LeaseRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs
SERIALIZATION_FAILURE_CODES = {"40001", "40P01"}
LOCK_TIMEOUT_CODES = {"55P03", "57014"}


def unit_lock_key(unit_id: UUID) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(unit_id.bytes, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_serialization_failure(exc: DBAPIError) -> bool:
    return _sqlstate(exc) in SERIALIZATION_FAILURE_CODES


def is_lock_timeout(exc: DBAPIError) -> bool:
    if _sqlstate(exc) in LOCK_TIMEOUT_CODES:
        return True
    message = str(exc.orig).lower()
    return "database is locked" in message or "database table is locked" in message


def run_in_transaction(
    session_factory: Callable[[], Session],
    work: Callable[[Session], T],
    *,
    retries: int = 3,
    backoff_seconds: float = 0.05,
) -> T:
    """Run ``work`` in one transaction, all or nothing.

    Serialization failures are retried up to ``retries`` times. Lock timeouts,
    and serialization failures that outlast the retries, raise Busy.
    """
    attempt = 0
    while True:
        db = session_factory()
        try:
            db.connection(execution_options={WRITE_TRANSACTION: True})
            result = work(db)
            db.commit()
            return result
        except DBAPIError as exc:
            db.rollback()
            if is_serialization_failure(exc) and attempt < retries:
                attempt += 1
                logger.debug("Serialization failure, retrying transaction (attempt %s/%s)", attempt, retries)
                time.sleep(backoff_seconds * attempt)
                continue
            if is_serialization_failure(exc) or is_lock_timeout(exc):
                logger.warning("Lease store busy: %s", exc.orig)
                raise Busy("The lease store is busy, retry shortly") from exc
            raise
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


@contextmanager
def read_session(session_factory: Callable[[], Session]):
    """Short-lived session for reads. Lock timeouts surface as Busy."""
    db = session_factory()
    try:
        yield db
    except DBAPIError as exc:
        if is_lock_timeout(exc):
            logger.warning("Lease store busy on read: %s", exc.orig)
            raise Busy("The lease store is busy, retry shortly") from exc
        raise
    finally:
        db.close()


class LeaseStore:
    """Indexed reads and writes over the ``leases`` table."""

    def __init__(self, lock_timeout_ms: int = 5000):
        self.lock_timeout_ms = lock_timeout_ms

    def lock_unit(self, db: Session, unit_id: UUID):
        """Serialize writers on one unit until the transaction ends.

        PostgreSQL takes a transaction-scoped advisory lock. SQLite engines
        already hold the database write lock from BEGIN IMMEDIATE.
        """
        if db.get_bind().dialect.name != "postgresql":
            return
        db.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"),
                   {"key": unit_lock_key(unit_id)})

    def get(self, db: Session, lease_id: UUID, include_deleted: bool = False, for_update: bool = False) -> Optional[Lease]:
        q = db.query(Lease).filter(Lease.id == lease_id)
        if not include_deleted:
            q = q.filter(Lease.deleted_at.is_(None))
        if for_update:
            q = q.with_for_update()
        return q.first()

    def active_leases_for_unit(self, db: Session, unit_id: UUID, today: Optional[date] = None) -> List[Lease]:
        """Active, non-deleted leases on the unit.

        With ``today``, leases already due for expiry are left out, matching
        the status reads report for them.
        """
        q = db.query(Lease).filter(
            Lease.unit_id == unit_id,
            Lease.status == LeaseStatus.active.value,
            Lease.deleted_at.is_(None),
        )
        if today is not None:
            q = q.filter(Lease.end_date > today)
        return (
            q.order_by(Lease.start_date.asc())
            .all()
        )

    def reference_exists(self, db: Session, reference: str) -> bool:
        return db.query(Lease.id).filter(Lease.reference == reference).first() is not None

    def add(self, db: Session, lease: Lease) -> Lease:
        db.add(lease)
        db.flush()
        return lease

    def _status_filter(self, status: str, today: date):
        # filters on the status callers see, not the stored one
        if status == LeaseStatus.active.value:
            return and_(Lease.status == LeaseStatus.active.value, Lease.end_date > today)
        if status == LeaseStatus.expired.value:
            return or_(
                Lease.status == LeaseStatus.expired.value,
                and_(Lease.status == LeaseStatus.active.value, Lease.end_date <= today),
            )
        if status == LeaseStatus.cancelled.value:
            return Lease.status == LeaseStatus.cancelled.value
        raise LeaseValidationError(f"Unknown lease status filter '{status}'")

    def query(self, db: Session, params: LeaseRequest, today: date, page_size: int) -> Tuple[List[Lease], int]:
        q = db.query(Lease)

        if not params.include_deleted:
            q = q.filter(Lease.deleted_at.is_(None))
        if params.unit_id:
            q = q.filter(Lease.unit_id == params.unit_id)
        if params.tenant_id:
            q = q.filter(Lease.tenant_id == params.tenant_id)
        if params.status and params.status.lower() != "all":
            q = q.filter(self._status_filter(params.status.lower(), today))

        total = q.count()
        rows = (
            q.order_by(Lease.created_at.desc(), Lease.id.desc())
            .offset((params.page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    def expire_due(self, db: Session, today: date):
        """Flip every active, non-deleted lease whose end has passed to expired.

        Returns the changed rows (id, reference, unit_id, tenant_id, end_date).
        """
        stmt = (
            update(Lease)
            .where(
                Lease.status == LeaseStatus.active.value,
                Lease.end_date <= today,
                Lease.deleted_at.is_(None),
            )
            .values(status=LeaseStatus.expired.value, updated_at=func.now())
            .returning(Lease.id, Lease.reference, Lease.unit_id, Lease.tenant_id, Lease.end_date)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).all()
