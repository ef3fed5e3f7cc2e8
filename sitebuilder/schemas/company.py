from typing import Any, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict


class SiteSummary(BaseModel):
    id: UUID
    domain: str
    site_name: str
    status: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


class OwnerSummary(BaseModel):
    id: UUID
    email: str
    username: str

    model_config = ConfigDict(from_attributes=True)


class Company(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    vat: Optional[str] = None
    status: Optional[bool] = None
    user_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[OwnerSummary] = None
    sites: List[SiteSummary] = []
    site_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class CompanyUpdate(BaseModel):
    id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    vat: Optional[str] = None
    status: Optional[bool] = None


class CompanyStatusUpdate(BaseModel):
    id: UUID
    # must be a bool; enforced by the route
    status: Any = None


class Pagination(BaseModel):
    page: int
    limit: int
    totalCount: int
    totalPages: int
    hasNextPage: bool
    hasPrevPage: bool


class CompanyList(BaseModel):
    success: bool = True
    data: List[Company]
    pagination: Pagination
