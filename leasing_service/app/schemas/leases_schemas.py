from datetime import datetime, date
from uuid import UUID
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field

from shared.core.schemas import CommonQueryParams, UserToken
from ..enum.leasing_enum import CallerRole, LeaseStatus


class CallerScope(BaseModel):
    """Who is asking, and which properties they may act on."""
    user_id: str
    role: CallerRole
    property_ids: List[UUID] = Field(default_factory=list)

    @classmethod
    def from_token(cls, token: UserToken) -> "CallerScope":
        return cls(user_id=token.user_id, role=token.role, property_ids=token.property_ids)


class UnitRef(BaseModel):
    unit_id: UUID
    property_id: UUID


class TenantSummary(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class LocalSummary(BaseModel):
    id: UUID
    reference_code: str
    status: Optional[str] = None
    size_m2: Optional[float] = None

    model_config = {"from_attributes": True}


class LeaseBase(BaseModel):
    unit_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    amount: Optional[Decimal] = None


class LeaseCreate(LeaseBase):
    unit_id: UUID
    tenant_id: UUID
    start_date: date
    end_date: date
    amount: Decimal
    status: Optional[LeaseStatus] = LeaseStatus.active


class LeaseUpdate(LeaseBase):
    status: Optional[LeaseStatus] = None


class LeaseOut(LeaseBase):
    id: UUID
    reference: str
    status: LeaseStatus
    stored_status: LeaseStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    # filled in on reads
    tenant: Optional[TenantSummary] = None
    local: Optional[LocalSummary] = None

    model_config = {"from_attributes": True}


class LeaseRequest(CommonQueryParams):
    status: Optional[str] = None       # "all" | "active" | "expired" | "cancelled"
    unit_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    include_deleted: bool = False


class LeaseListResponse(BaseModel):
    leases: List[LeaseOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class CancelResult(BaseModel):
    lease_id: UUID
    status: LeaseStatus
    already_cancelled: bool = False


class SweepResult(BaseModel):
    updated_count: int
    expired_ids: List[UUID] = Field(default_factory=list)
