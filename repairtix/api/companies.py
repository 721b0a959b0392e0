"""
Company API routes.

Company admins read and edit their own company. Platform superusers list
every company and manage location billing across tenants.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.api.locations import LocationFreeRequest, LocationResponse
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_admin, require_company_context, require_superuser
from repairtix.services import companies as company_service
from repairtix.services import locations as location_service

router = APIRouter(prefix="/api/companies", tags=["companies"])


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


class CompanyResponse(BaseModel):
    id: UUID
    name: str
    subdomain: str
    plan: str
    status: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/me", response_model=CompanyResponse)
async def get_my_company(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await company_service.get_company(db, context.company_id)


@router.put("/me", response_model=CompanyResponse, dependencies=[Depends(require_admin())])
async def update_my_company(
    payload: CompanyUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await company_service.update_company(
        db, context.company_id, payload.model_dump(exclude_unset=True)
    )


@router.get("", response_model=List[CompanyResponse], dependencies=[Depends(require_superuser)])
async def list_companies(skip: int = 0, limit: int = 100, db: AsyncSession = Depends(get_db)):
    return await company_service.list_companies(db, skip=skip, limit=limit)


@router.get("/{company_id}", response_model=CompanyResponse, dependencies=[Depends(require_superuser)])
async def get_company(company_id: UUID, db: AsyncSession = Depends(get_db)):
    return await company_service.get_company(db, company_id)


@router.get(
    "/{company_id}/locations",
    response_model=List[LocationResponse],
    dependencies=[Depends(require_superuser)],
)
async def list_company_locations(company_id: UUID, db: AsyncSession = Depends(get_db)):
    await company_service.get_company(db, company_id)
    return await location_service.list_locations(db, company_id, include_restricted=True)


@router.patch(
    "/{company_id}/locations/{location_id}/free",
    response_model=LocationResponse,
    dependencies=[Depends(require_superuser)],
)
async def set_company_location_free(
    company_id: UUID,
    location_id: UUID,
    payload: LocationFreeRequest,
    db: AsyncSession = Depends(get_db),
):
    return await location_service.set_location_free(db, location_id, company_id, payload.is_free)
