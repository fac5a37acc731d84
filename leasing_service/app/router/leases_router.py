from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import ValidationError

from shared.core.auth import validate_current_token
from shared.core.schemas import Lookup, UserToken
from ..core.exceptions import AccessDenied
from ..core.services import get_expiry_sweeper, get_lease_engine
from ..crud.leases.allocation_engine import LeaseAllocationEngine
from ..crud.leases.expiry_sweeper import LeaseExpirySweeper
from ..enum.leasing_enum import CallerRole, LeaseStatus
from ..schemas.leases_schemas import (
    CallerScope, CancelResult, LeaseCreate, LeaseListResponse, LeaseOut, LeaseRequest, LeaseUpdate, SweepResult,
)

router = APIRouter(
    prefix="/api/leases",
    tags=["leases"],
    dependencies=[Depends(validate_current_token)]
)


def get_caller_scope(current_user: UserToken = Depends(validate_current_token)) -> CallerScope:
    try:
        return CallerScope.from_token(current_user)
    except ValidationError:
        raise AccessDenied(f"Unknown role '{current_user.role}'")


@router.get("/all", response_model=LeaseListResponse)
def get_leases(
    params: LeaseRequest = Depends(),
    engine: LeaseAllocationEngine = Depends(get_lease_engine),
):
    return engine.list_leases(params)


@router.get("/status-lookup", response_model=List[Lookup])
def lease_status_lookup():
    return [
        Lookup(id=status.value, name=status.name.capitalize())
        for status in LeaseStatus
    ]


@router.post("/expire", response_model=SweepResult)
def trigger_expired_leases(
    caller: CallerScope = Depends(get_caller_scope),
    sweeper: LeaseExpirySweeper = Depends(get_expiry_sweeper),
):
    if caller.role != CallerRole.admin:
        raise AccessDenied("Only admins can trigger the lease expiry sweep.")
    return sweeper.sweep()


@router.get("/{lease_id}", response_model=LeaseOut)
def get_lease(
    lease_id: UUID,
    engine: LeaseAllocationEngine = Depends(get_lease_engine),
):
    return engine.get_lease(lease_id)


@router.post("/", response_model=LeaseOut, status_code=201)
def create_lease(
    payload: LeaseCreate,
    caller: CallerScope = Depends(get_caller_scope),
    engine: LeaseAllocationEngine = Depends(get_lease_engine),
):
    return engine.create_lease(payload, caller)


@router.put("/{lease_id}", response_model=LeaseOut)
def update_lease(
    lease_id: UUID,
    payload: LeaseUpdate,
    caller: CallerScope = Depends(get_caller_scope),
    engine: LeaseAllocationEngine = Depends(get_lease_engine),
):
    return engine.update_lease(lease_id, payload, caller)


@router.delete("/{lease_id}", response_model=CancelResult)
def cancel_lease(
    lease_id: UUID,
    caller: CallerScope = Depends(get_caller_scope),
    engine: LeaseAllocationEngine = Depends(get_lease_engine),
):
    return engine.cancel_lease(lease_id, caller)
