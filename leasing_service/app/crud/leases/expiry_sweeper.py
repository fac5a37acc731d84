import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy.orm import Session

from shared.core.config import settings
from ...core.clock import make_today
from ...enum.leasing_enum import LeaseEvent, LeaseStatus
from ...schemas.leases_schemas import SweepResult
from .collaborators import EventSink
from .interval_store import LeaseStore, run_in_transaction

logger = logging.getLogger(__name__)


class LeaseExpirySweeper:
    """Bulk-advances every active lease whose end date has passed to ``expired``.

    One UPDATE in one short transaction. Running it again, or concurrently,
    only ever matches rows that are still active, so repeats update nothing.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        events: EventSink,
        *,
        store: Optional[LeaseStore] = None,
        today: Optional[Callable[[], date]] = None,
        max_retries: int = settings.LEASE_TX_RETRIES,
    ):
        self.session_factory = session_factory
        self.events = events
        self.store = store or LeaseStore(settings.LEASE_LOCK_TIMEOUT_MS)
        self.today = today or make_today()
        self.max_retries = max_retries

    def sweep(self) -> SweepResult:
        today = self.today()
        rows = run_in_transaction(
            self.session_factory,
            lambda db: self.store.expire_due(db, today),
            retries=self.max_retries,
        )

        if rows:
            logger.info("Lease expiry sweep: %s lease(s) marked as expired.", len(rows))
        else:
            logger.info("Lease expiry sweep: no leases to update.")

        for row in rows:
            payload = {
                "id": str(row.id),
                "reference": row.reference,
                "unit_id": str(row.unit_id),
                "tenant_id": str(row.tenant_id),
                "end_date": row.end_date.isoformat(),
                "status": LeaseStatus.expired.value,
            }
            try:
                self.events.emit(LeaseEvent.expired.value, payload)
            except Exception:
                logger.exception("Failed to emit %s for lease %s", LeaseEvent.expired.value, row.id)

        return SweepResult(updated_count=len(rows), expired_ids=[row.id for row in rows])
