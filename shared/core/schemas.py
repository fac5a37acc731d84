from pydantic import BaseModel, Field
from typing import Generic, List, Optional, TypeVar, Union
from uuid import UUID

# Shared properties
T = TypeVar("T")


class UserToken(BaseModel):
    user_id: str
    name: Optional[str] = None
    role: str                      # "admin" | "manager" | "employee"
    property_ids: List[UUID] = Field(default_factory=list)
    exp: Optional[int] = None


class CommonQueryParams(BaseModel):
    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1)


class Lookup(BaseModel):
    id: Union[str, UUID]  # accepts both UUID and str
    name: str

    class Config:
        from_attributes = True


class JsonOutResult(BaseModel, Generic[T]):
    data: Optional[T] = None
    status: str
    status_code: str
    message: str
