"""
Location API routes.

Adding a location beyond the first requires a payment method on file; the
monthly subscription amount follows the number of billable locations.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import UserRole
from repairtix.database import get_db
from repairtix.middleware import (
    TenantContext,
    require_admin,
    require_company_context,
    require_payment_method,
)
from repairtix.models import User, UserLocation
from repairtix.services import locations as location_service

router = APIRouter(prefix="/api/locations", tags=["locations"])


class LocationBase(BaseModel):
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
    state_tax: Optional[float] = Field(None, ge=0, le=100)
    county_tax: Optional[float] = Field(None, ge=0, le=100)
    city_tax: Optional[float] = Field(None, ge=0, le=100)
    tax_name: Optional[str] = Field(None, max_length=100)
    tax_enabled: Optional[bool] = None
    tax_inclusive: Optional[bool] = None


class LocationCreate(LocationBase):
    name: str = Field(..., min_length=1, max_length=255)
    is_free: bool = False


class LocationUpdate(LocationBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_free: Optional[bool] = None


class LocationFreeRequest(BaseModel):
    is_free: bool


class LocationResponse(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    address: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    is_active: bool
    is_free: bool
    state_tax: float
    county_tax: float
    city_tax: float
    tax_rate: float
    tax_name: str
    tax_enabled: bool
    tax_inclusive: bool
    created_at: datetime

    class Config:
        from_attributes = True


class LocationUserResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str

    class Config:
        from_attributes = True


@router.get("", response_model=List[LocationResponse])
async def list_locations(
    include_restricted: bool = False,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """
    List the company's locations, oldest first.

    While the subscription is past due only free locations are listed,
    unless an admin asks for ``include_restricted``.
    """
    show_all = include_restricted and (context.is_superuser or context.role == UserRole.ADMIN.value)
    return await location_service.list_locations(db, context.company_id, include_restricted=show_all)


@router.get("/{location_id}", response_model=LocationResponse)
async def get_location(
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await location_service.get_location(db, location_id, context.company_id)


@router.get(
    "/{location_id}/users",
    response_model=List[LocationUserResponse],
    dependencies=[Depends(require_admin())],
)
async def list_location_users(
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await location_service.get_location(db, location_id, context.company_id)
    result = await db.execute(
        select(User)
        .join(UserLocation, UserLocation.user_id == User.id)
        .where(
            UserLocation.location_id == location_id,
            User.company_id == context.company_id,
            User.deleted_at.is_(None),
        )
        .order_by(User.last_name, User.first_name)
    )
    return result.scalars().all()


@router.post(
    "",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin()), Depends(require_payment_method)],
)
async def create_location(
    payload: LocationCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await location_service.create_location(db, context.company_id, payload.model_dump())


@router.put("/{location_id}", response_model=LocationResponse, dependencies=[Depends(require_admin())])
async def update_location(
    location_id: UUID,
    payload: LocationUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await location_service.update_location(
        db, location_id, context.company_id, payload.model_dump(exclude_unset=True)
    )


@router.patch("/{location_id}/free", response_model=LocationResponse, dependencies=[Depends(require_admin())])
async def set_location_free(
    location_id: UUID,
    payload: LocationFreeRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Mark a location free or billable. The first location always stays free."""
    return await location_service.set_location_free(db, location_id, context.company_id, payload.is_free)


@router.delete(
    "/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin())],
)
async def delete_location(
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await location_service.delete_location(db, location_id, context.company_id)
