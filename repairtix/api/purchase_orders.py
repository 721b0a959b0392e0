"""
Purchase order API routes.

Orders are placed for a location (the caller's current one unless given)
and stock that location when received.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.errors import BadRequestError
from repairtix.middleware import (
    TenantContext,
    optional_location_context,
    require_company_context,
    require_permission,
)
from repairtix.models import PurchaseOrderStatus
from repairtix.services import purchase_orders as po_service

router = APIRouter(prefix="/api/purchase-orders", tags=["purchase-orders"])


class POItemInput(BaseModel):
    inventory_item_id: UUID
    quantity_ordered: int = Field(..., gt=0)
    unit_cost: float = Field(..., ge=0)
    notes: Optional[str] = None


class POCreate(BaseModel):
    supplier: str = Field(..., min_length=1, max_length=255)
    location_id: Optional[UUID] = None
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[POItemInput]


class POUpdate(BaseModel):
    supplier: Optional[str] = Field(None, min_length=1, max_length=255)
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: Optional[List[POItemInput]] = None


class ReceivedLine(BaseModel):
    id: UUID
    quantity_received: int


class ReceiveRequest(BaseModel):
    items: List[ReceivedLine]


class POItemResponse(BaseModel):
    id: UUID
    inventory_item_id: UUID
    quantity_ordered: int
    quantity_received: int
    unit_cost: float
    subtotal: float
    notes: Optional[str]

    class Config:
        from_attributes = True


class POResponse(BaseModel):
    id: UUID
    location_id: UUID
    po_number: str
    supplier: str
    status: str
    order_date: datetime
    expected_delivery_date: Optional[datetime]
    received_date: Optional[datetime]
    notes: Optional[str]
    total_amount: float
    items: List[POItemResponse]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get(
    "",
    response_model=List[POResponse],
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_READ))],
)
async def list_purchase_orders(
    status: Optional[PurchaseOrderStatus] = None,
    search: Optional[str] = None,
    location_id: Optional[UUID] = None,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await po_service.list_purchase_orders(
        db,
        context.company_id,
        status=status.value if status else None,
        search=search,
        location_id=location_id,
    )


@router.get(
    "/{po_id}",
    response_model=POResponse,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_READ))],
)
async def get_purchase_order(
    po_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await po_service.get_purchase_order(db, po_id, context.company_id)


@router.post(
    "",
    response_model=POResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_CREATE))],
)
async def create_purchase_order(
    payload: POCreate,
    context: TenantContext = Depends(optional_location_context),
    db: AsyncSession = Depends(get_db),
):
    location_id = payload.location_id or context.location_id
    if location_id is None:
        raise BadRequestError("Location is required to create a purchase order")
    data = payload.model_dump(exclude={"location_id"})
    return await po_service.create_purchase_order(db, context.company_id, location_id, data)


@router.put(
    "/{po_id}",
    response_model=POResponse,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_UPDATE))],
)
async def update_purchase_order(
    po_id: UUID,
    payload: POUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Edit a draft order. Passing ``items`` replaces all lines."""
    return await po_service.update_purchase_order(
        db, po_id, context.company_id, payload.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{po_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_DELETE))],
)
async def delete_purchase_order(
    po_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await po_service.delete_purchase_order(db, po_id, context.company_id)


@router.post(
    "/{po_id}/order",
    response_model=POResponse,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_UPDATE))],
)
async def mark_ordered(
    po_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await po_service.mark_ordered(db, po_id, context.company_id)


@router.post(
    "/{po_id}/receive",
    response_model=POResponse,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_RECEIVE))],
)
async def receive_purchase_order(
    po_id: UUID,
    payload: ReceiveRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await po_service.receive_purchase_order(
        db, po_id, context.company_id, [line.model_dump() for line in payload.items]
    )


@router.post(
    "/{po_id}/cancel",
    response_model=POResponse,
    dependencies=[Depends(require_permission(Permission.PURCHASE_ORDERS_CANCEL))],
)
async def cancel_purchase_order(
    po_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await po_service.cancel_purchase_order(db, po_id, context.company_id)
