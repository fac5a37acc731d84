import logging
from typing import Any, Callable, Dict, Iterable, Optional, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from ...core.exceptions import NotFound
from ...models.properties import Local
from ...models.tenants import Tenant
from ...schemas.leases_schemas import LocalSummary, TenantSummary, UnitRef
from .interval_store import read_session


class UnitDirectory(Protocol):
    def resolve_unit(self, unit_id: UUID) -> UnitRef:
        """Return the unit's owning property, or raise NotFound."""

    def describe_units(self, unit_ids: Iterable[UUID]) -> Dict[UUID, LocalSummary]: ...


class TenantDirectory(Protocol):
    def tenant_exists(self, tenant_id: UUID) -> bool: ...

    def tenant_name(self, tenant_id: UUID) -> Optional[str]: ...

    def describe_tenants(self, tenant_ids: Iterable[UUID]) -> Dict[UUID, TenantSummary]: ...


class EventSink(Protocol):
    def emit(self, event_name: str, payload: Dict[str, Any]) -> None: ...


# ----------------------------------------------------
# SQL-backed directories over the collaborator tables
# ----------------------------------------------------
# Each lookup uses its own short read session, closed before the lease
# transaction starts, so it never holds a lock the engine waits on.

class SqlUnitDirectory:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def resolve_unit(self, unit_id: UUID) -> UnitRef:
        with read_session(self.session_factory) as db:
            property_id = (
                db.query(Local.property_id)
                .filter(Local.id == unit_id)
                .scalar()
            )
        if property_id is None:
            raise NotFound(f"Unit {unit_id} not found")
        return UnitRef(unit_id=unit_id, property_id=property_id)

    def describe_units(self, unit_ids: Iterable[UUID]) -> Dict[UUID, LocalSummary]:
        unit_ids = set(unit_ids)
        if not unit_ids:
            return {}
        with read_session(self.session_factory) as db:
            rows = db.query(Local).filter(Local.id.in_(unit_ids)).all()
            return {row.id: LocalSummary.model_validate(row) for row in rows}


class SqlTenantDirectory:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def tenant_name(self, tenant_id: UUID) -> Optional[str]:
        with read_session(self.session_factory) as db:
            return db.query(Tenant.name).filter(Tenant.id == tenant_id).scalar()

    def tenant_exists(self, tenant_id: UUID) -> bool:
        with read_session(self.session_factory) as db:
            return db.query(Tenant.id).filter(Tenant.id == tenant_id).first() is not None

    def describe_tenants(self, tenant_ids: Iterable[UUID]) -> Dict[UUID, TenantSummary]:
        tenant_ids = set(tenant_ids)
        if not tenant_ids:
            return {}
        with read_session(self.session_factory) as db:
            rows = db.query(Tenant).filter(Tenant.id.in_(tenant_ids)).all()
            return {row.id: TenantSummary.model_validate(row) for row in rows}


class LoggingEventSink:
    """Default sink: records domain events in the service log."""

    def __init__(self, name: str = "leasing.events"):
        self.log = logging.getLogger(name)

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.log.info("%s %s", event_name, payload)
