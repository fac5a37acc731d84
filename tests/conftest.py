import os
import uuid
from datetime import date
from decimal import Decimal

import pytest

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./leasing_test.db")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LEASE_SWEEP_ENABLED", "false")

from shared.core.database import Base, build_engine, build_session_factory  # noqa: E402
from leasing_service.app.core.exceptions import NotFound  # noqa: E402
from leasing_service.app.crud.leases.allocation_engine import LeaseAllocationEngine  # noqa: E402
from leasing_service.app.crud.leases.expiry_sweeper import LeaseExpirySweeper  # noqa: E402
from leasing_service.app.crud.leases.interval_store import LeaseStore  # noqa: E402
from leasing_service.app.enum.leasing_enum import CallerRole  # noqa: E402
from leasing_service.app.models import leases, properties, tenants  # noqa: E402,F401
from leasing_service.app.models.leases import Lease  # noqa: E402
from leasing_service.app.schemas.leases_schemas import (  # noqa: E402
    CallerScope, LeaseCreate, LocalSummary, TenantSummary, UnitRef,
)

TODAY = date(2024, 12, 1)
PROPERTY_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
PROPERTY_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


class FixedClock:
    def __init__(self, today: date):
        self.current = today

    def __call__(self) -> date:
        return self.current


class FakeUnitDirectory:
    def __init__(self):
        self.units = {}

    def add(self, property_id=PROPERTY_A):
        unit_id = uuid.uuid4()
        self.units[unit_id] = property_id
        return unit_id

    def resolve_unit(self, unit_id):
        if unit_id not in self.units:
            raise NotFound(f"Unit {unit_id} not found")
        return UnitRef(unit_id=unit_id, property_id=self.units[unit_id])

    def describe_units(self, unit_ids):
        return {
            unit_id: LocalSummary(id=unit_id, reference_code=f"L-{unit_id.hex[:6].upper()}", status="available")
            for unit_id in unit_ids if unit_id in self.units
        }


class FakeTenantDirectory:
    def __init__(self):
        self.names = {}

    def add(self, name="Jean Mugisha"):
        tenant_id = uuid.uuid4()
        self.names[tenant_id] = name
        return tenant_id

    def tenant_exists(self, tenant_id):
        return tenant_id in self.names

    def tenant_name(self, tenant_id):
        return self.names.get(tenant_id)

    def describe_tenants(self, tenant_ids):
        return {
            tenant_id: TenantSummary(id=tenant_id, name=self.names[tenant_id])
            for tenant_id in tenant_ids if tenant_id in self.names
        }


class RecordingEventSink:
    def __init__(self):
        self.events = []

    def emit(self, event_name, payload):
        self.events.append((event_name, payload))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'leases.db'}"


@pytest.fixture
def db_engine(db_url):
    engine = build_engine(db_url, lock_timeout_ms=5000)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def units():
    return FakeUnitDirectory()


@pytest.fixture
def tenants_dir():
    return FakeTenantDirectory()


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def lease_engine(session_factory, units, tenants_dir, events, clock):
    return LeaseAllocationEngine(
        session_factory, units, tenants_dir, events,
        store=LeaseStore(lock_timeout_ms=5000), today=clock,
    )


@pytest.fixture
def sweeper(session_factory, events, clock):
    return LeaseExpirySweeper(session_factory, events, today=clock)


@pytest.fixture
def admin():
    return CallerScope(user_id="admin-1", role=CallerRole.admin)


@pytest.fixture
def manager():
    return CallerScope(user_id="manager-1", role=CallerRole.manager, property_ids=[PROPERTY_A])


@pytest.fixture
def unit(units):
    return units.add()


@pytest.fixture
def tenant(tenants_dir):
    return tenants_dir.add()


@pytest.fixture
def new_lease(unit, tenant):
    def _make(start, end, amount="1200.00", unit_id=None, tenant_id=None, **extra):
        return LeaseCreate(
            unit_id=unit_id or unit,
            tenant_id=tenant_id or tenant,
            start_date=start,
            end_date=end,
            amount=Decimal(amount),
            **extra,
        )
    return _make


@pytest.fixture
def insert_lease(session_factory, unit, tenant):
    """Write a lease row directly, bypassing the engine's checks."""
    def _insert(start, end, status="active", unit_id=None, deleted_at=None):
        lease = Lease(
            reference=f"LEASE-SEED-{uuid.uuid4().hex[:8].upper()}",
            unit_id=unit_id or unit,
            tenant_id=tenant,
            start_date=start,
            end_date=end,
            amount=Decimal("500.00"),
            status=status,
            deleted_at=deleted_at,
        )
        with session_factory() as db:
            db.add(lease)
            db.commit()
            return lease.id
    return _insert
