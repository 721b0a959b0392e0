"""
Inventory classification API routes.

Categories, subcategories, brands and models share one shape, so their
routers are built from a single factory. Subcategories hang off a category
and models off a brand.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_company_context, require_permission
from repairtix.models import InventoryBrand, InventoryCategory, InventoryModel, InventorySubcategory
from repairtix.services import inventory_reference as reference_service


class EntryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None


class EntryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None


class EntryResponse(BaseModel):
    id: UUID
    name: str
    category_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


def build_router(prefix: str, tag: str, model) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get(
        "",
        response_model=List[EntryResponse],
        dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
    )
    async def list_entries(
        parent_id: Optional[UUID] = None,
        context: TenantContext = Depends(require_company_context),
        db: AsyncSession = Depends(get_db),
    ):
        return await reference_service.list_entries(db, model, context.company_id, parent_id=parent_id)

    @router.get(
        "/{entry_id}",
        response_model=EntryResponse,
        dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
    )
    async def get_entry(
        entry_id: UUID,
        context: TenantContext = Depends(require_company_context),
        db: AsyncSession = Depends(get_db),
    ):
        return await reference_service.get_entry(db, model, entry_id, context.company_id)

    @router.post(
        "",
        response_model=EntryResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(require_permission(Permission.INVENTORY_CREATE))],
    )
    async def create_entry(
        payload: EntryCreate,
        context: TenantContext = Depends(require_company_context),
        db: AsyncSession = Depends(get_db),
    ):
        return await reference_service.create_entry(db, model, context.company_id, payload.model_dump())

    @router.put(
        "/{entry_id}",
        response_model=EntryResponse,
        dependencies=[Depends(require_permission(Permission.INVENTORY_UPDATE))],
    )
    async def update_entry(
        entry_id: UUID,
        payload: EntryUpdate,
        context: TenantContext = Depends(require_company_context),
        db: AsyncSession = Depends(get_db),
    ):
        return await reference_service.update_entry(
            db, model, entry_id, context.company_id, payload.model_dump(exclude_unset=True)
        )

    @router.delete(
        "/{entry_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        dependencies=[Depends(require_permission(Permission.INVENTORY_DELETE))],
    )
    async def delete_entry(
        entry_id: UUID,
        context: TenantContext = Depends(require_company_context),
        db: AsyncSession = Depends(get_db),
    ):
        await reference_service.delete_entry(db, model, entry_id, context.company_id)

    return router


categories_router = build_router("/api/inventory-categories", "inventory-categories", InventoryCategory)
subcategories_router = build_router("/api/inventory-subcategories", "inventory-subcategories", InventorySubcategory)
brands_router = build_router("/api/inventory-brands", "inventory-brands", InventoryBrand)
models_router = build_router("/api/inventory-models", "inventory-models", InventoryModel)
