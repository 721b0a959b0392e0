"""
Inventory API routes.

Items are company-wide; stock is reported per location. Listing can be
narrowed to one location with ``location_id``.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_company_context, require_permission
from repairtix.models import InventoryItem
from repairtix.services import inventory as inventory_service

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


class ItemBase(BaseModel):
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    model_id: Optional[UUID] = None
    supplier: Optional[str] = Field(None, max_length=255)
    supplier_part_number: Optional[str] = Field(None, max_length=100)


class ItemCreate(ItemBase):
    sku: Optional[str] = Field(None, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    cost_price: float = Field(0, ge=0)
    selling_price: float = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    is_taxable: bool = True
    track_quantity: bool = True
    is_active: bool = True
    location_id: Optional[UUID] = None
    initial_quantity: Optional[int] = None


class ItemUpdate(ItemBase):
    sku: Optional[str] = Field(None, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    cost_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    is_taxable: Optional[bool] = None
    track_quantity: Optional[bool] = None
    is_active: Optional[bool] = None


class ItemResponse(BaseModel):
    id: UUID
    sku: str
    name: str
    description: Optional[str]
    category_id: Optional[UUID]
    subcategory_id: Optional[UUID]
    brand_id: Optional[UUID]
    model_id: Optional[UUID]
    cost_price: float
    selling_price: float
    reorder_level: int
    supplier: Optional[str]
    supplier_part_number: Optional[str]
    is_taxable: bool
    track_quantity: bool
    is_active: bool
    created_at: datetime
    location_quantities: Dict[UUID, int] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class QuantityRequest(BaseModel):
    location_id: UUID
    quantity: int


class AdjustRequest(BaseModel):
    location_id: UUID
    delta: int


class QuantityResponse(BaseModel):
    inventory_item_id: UUID
    location_id: UUID
    quantity: int


async def _with_quantities(
    db: AsyncSession, items: List[InventoryItem], location_id: Optional[UUID] = None
) -> List[ItemResponse]:
    quantities = await inventory_service.get_location_quantities(db, [item.id for item in items], location_id)
    responses = []
    for item in items:
        response = ItemResponse.model_validate(item)
        response.location_quantities = quantities.get(item.id, {})
        responses.append(response)
    return responses


@router.get(
    "",
    response_model=List[ItemResponse],
    dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
)
async def list_items(
    search: Optional[str] = None,
    location_id: Optional[UUID] = None,
    active_only: bool = False,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    items = await inventory_service.list_items(db, context.company_id, search=search, active_only=active_only)
    return await _with_quantities(db, items, location_id)


@router.get(
    "/{item_id}",
    response_model=ItemResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
)
async def get_item(
    item_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.get_item(db, item_id, context.company_id)
    return (await _with_quantities(db, [item]))[0]


@router.post(
    "",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.INVENTORY_CREATE))],
)
async def create_item(
    payload: ItemCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an item. A SKU is generated when none is given.

    Raises:
        BadRequestError: If the SKU is taken or a classification id is unknown
    """
    item = await inventory_service.create_item(db, context.company_id, payload.model_dump())
    return (await _with_quantities(db, [item]))[0]


@router.put(
    "/{item_id}",
    response_model=ItemResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_UPDATE))],
)
async def update_item(
    item_id: UUID,
    payload: ItemUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.update_item(
        db, item_id, context.company_id, payload.model_dump(exclude_unset=True)
    )
    return (await _with_quantities(db, [item]))[0]


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.INVENTORY_DELETE))],
)
async def delete_item(
    item_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await inventory_service.delete_item(db, item_id, context.company_id)


@router.get(
    "/{item_id}/quantity/{location_id}",
    response_model=QuantityResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
)
async def get_quantity(
    item_id: UUID,
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    quantity = await inventory_service.get_quantity_for_location(db, item_id, location_id, context.company_id)
    return QuantityResponse(inventory_item_id=item_id, location_id=location_id, quantity=quantity)


@router.put(
    "/{item_id}/quantity",
    response_model=QuantityResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_UPDATE))],
)
async def set_quantity(
    item_id: UUID,
    payload: QuantityRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Overwrite the stock count at a location."""
    quantity = await inventory_service.set_quantity_for_location(
        db, item_id, payload.location_id, payload.quantity, context.company_id
    )
    return QuantityResponse(inventory_item_id=item_id, location_id=payload.location_id, quantity=quantity)


@router.post(
    "/{item_id}/adjust",
    response_model=QuantityResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_UPDATE))],
)
async def adjust_quantity(
    item_id: UUID,
    payload: AdjustRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Add (or with a negative delta, remove) stock at a location."""
    quantity = await inventory_service.adjust_quantity_for_location(
        db, item_id, payload.location_id, payload.delta, context.company_id
    )
    return QuantityResponse(inventory_item_id=item_id, location_id=payload.location_id, quantity=quantity)
