"""Customer device (asset) API routes."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_company_context, require_permission
from repairtix.services import customers as customer_service

router = APIRouter(prefix="/api/assets", tags=["assets"])


class AssetCreate(BaseModel):
    customer_id: UUID
    device_type: str = Field(..., min_length=1, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class AssetUpdate(BaseModel):
    device_type: Optional[str] = Field(None, min_length=1, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class AssetResponse(BaseModel):
    id: UUID
    customer_id: UUID
    device_type: str
    device_brand: Optional[str]
    device_model: Optional[str]
    serial_number: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get(
    "",
    response_model=List[AssetResponse],
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_READ))],
)
async def list_assets(
    customer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.list_assets(db, context.company_id, customer_id)


@router.get(
    "/{asset_id}",
    response_model=AssetResponse,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_READ))],
)
async def get_asset(
    asset_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.get_asset(db, asset_id, context.company_id)


@router.post(
    "",
    response_model=AssetResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_UPDATE))],
)
async def create_asset(
    payload: AssetCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump()
    customer_id = data.pop("customer_id")
    return await customer_service.create_asset(db, context.company_id, customer_id, data)


@router.put(
    "/{asset_id}",
    response_model=AssetResponse,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_UPDATE))],
)
async def update_asset(
    asset_id: UUID,
    payload: AssetUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.update_asset(
        db, asset_id, context.company_id, payload.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_DELETE))],
)
async def delete_asset(
    asset_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await customer_service.delete_asset(db, asset_id, context.company_id)
