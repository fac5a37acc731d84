from functools import lru_cache

from shared.core.config import settings
from shared.core.database import LeasingSessionLocal
from ..crud.leases.allocation_engine import LeaseAllocationEngine
from ..crud.leases.collaborators import LoggingEventSink, SqlTenantDirectory, SqlUnitDirectory
from ..crud.leases.expiry_sweeper import LeaseExpirySweeper
from ..crud.leases.interval_store import LeaseStore
from .clock import make_today


@lru_cache
def get_event_sink() -> LoggingEventSink:
    return LoggingEventSink()


@lru_cache
def get_lease_engine() -> LeaseAllocationEngine:
    return LeaseAllocationEngine(
        LeasingSessionLocal,
        units=SqlUnitDirectory(LeasingSessionLocal),
        tenants=SqlTenantDirectory(LeasingSessionLocal),
        events=get_event_sink(),
        store=LeaseStore(settings.LEASE_LOCK_TIMEOUT_MS),
        today=make_today(settings.LEASE_TIMEZONE),
    )


@lru_cache
def get_expiry_sweeper() -> LeaseExpirySweeper:
    return LeaseExpirySweeper(
        LeasingSessionLocal,
        events=get_event_sink(),
        store=LeaseStore(settings.LEASE_LOCK_TIMEOUT_MS),
        today=make_today(settings.LEASE_TIMEZONE),
    )
