"""
Invoice API routes.

Invoices are created at the caller's current location and take their tax
settings from it. Line items tied to inventory move stock at that location.
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
    get_user_permissions,
    optional_location_context,
    require_company_context,
    require_permission,
)
from repairtix.models import InvoiceItemType, InvoiceStatus
from repairtix.services import invoices as invoice_service

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


class InvoiceCreate(BaseModel):
    customer_id: UUID
    ticket_id: Optional[UUID] = None
    location_id: Optional[UUID] = None
    status: Optional[InvoiceStatus] = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    discount_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    customer_id: Optional[UUID] = None
    ticket_id: Optional[UUID] = None
    status: Optional[InvoiceStatus] = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    discount_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class ItemCreate(BaseModel):
    inventory_item_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: int = Field(1, gt=0)
    unit_price: Optional[float] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    type: Optional[InvoiceItemType] = None
    is_taxable: bool = True


class ItemUpdate(BaseModel):
    inventory_item_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: Optional[int] = Field(None, gt=0)
    unit_price: Optional[float] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    type: Optional[InvoiceItemType] = None
    is_taxable: Optional[bool] = None


class MarkPaidRequest(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_reference: Optional[str] = Field(None, max_length=255)
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None


class RefundRequest(BaseModel):
    amount: float
    reason: Optional[str] = None
    method: Optional[str] = Field(None, max_length=50)


class InvoiceItemResponse(BaseModel):
    id: UUID
    inventory_item_id: Optional[UUID]
    description: str
    quantity: int
    unit_price: float
    discount_percent: float
    discount_amount: float
    subtotal: float
    type: str
    is_taxable: bool

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    location_id: UUID
    invoice_number: str
    customer_id: UUID
    ticket_id: Optional[UUID]
    status: str
    issue_date: Optional[datetime]
    due_date: Optional[datetime]
    paid_date: Optional[datetime]
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    notes: Optional[str]
    payment_method: Optional[str]
    payment_reference: Optional[str]
    refund_amount: float
    refund_date: Optional[datetime]
    refund_reason: Optional[str]
    refund_method: Optional[str]
    items: List[InvoiceItemResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _dump(payload: BaseModel) -> dict:
    data = payload.model_dump(exclude_unset=True)
    for field in ("status", "type"):
        if data.get(field) is not None:
            data[field] = data[field].value
    return data


@router.get(
    "",
    response_model=List[InvoiceResponse],
    dependencies=[Depends(require_permission(Permission.INVOICES_READ))],
)
async def list_invoices(
    customer_id: Optional[UUID] = None,
    status: Optional[InvoiceStatus] = None,
    ticket_id: Optional[UUID] = None,
    location_id: Optional[UUID] = None,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.list_invoices(
        db,
        context.company_id,
        customer_id=customer_id,
        status=status.value if status else None,
        ticket_id=ticket_id,
        location_id=location_id,
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_READ))],
)
async def get_invoice(
    invoice_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.get_invoice(db, invoice_id, context.company_id)


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.INVOICES_CREATE))],
)
async def create_invoice(
    payload: InvoiceCreate,
    context: TenantContext = Depends(optional_location_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a draft invoice at the caller's current location.

    An explicit ``location_id`` is only honoured for superusers, who have no
    location of their own.
    """
    location_id = context.location_id
    if context.is_superuser and payload.location_id is not None:
        location_id = payload.location_id
    if location_id is None:
        raise BadRequestError("User must have a current location set")

    data = _dump(payload)
    data.pop("location_id", None)
    return await invoice_service.create_invoice(db, context.company_id, location_id, data)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_UPDATE))],
)
async def update_invoice(
    invoice_id: UUID,
    payload: InvoiceUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.update_invoice(db, invoice_id, context.company_id, _dump(payload))


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.INVOICES_DELETE))],
)
async def delete_invoice(
    invoice_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await invoice_service.delete_invoice(db, invoice_id, context.company_id)


# Line items


@router.post(
    "/{invoice_id}/items",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.INVOICES_MANAGE_ITEMS))],
)
async def add_invoice_item(
    invoice_id: UUID,
    payload: ItemCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await invoice_service.add_item(db, invoice_id, context.company_id, _dump(payload))
    return await invoice_service.get_invoice(db, invoice_id, context.company_id)


@router.put(
    "/{invoice_id}/items/{item_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_MANAGE_ITEMS))],
)
async def update_invoice_item(
    invoice_id: UUID,
    item_id: UUID,
    payload: ItemUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Price and discount changes need their own permissions on top of item management."""
    permissions = None
    if not context.is_superuser:
        permissions = await get_user_permissions(db, context.user, context.company_id)

    await invoice_service.update_item(
        db, invoice_id, item_id, context.company_id, _dump(payload), permissions=permissions
    )
    return await invoice_service.get_invoice(db, invoice_id, context.company_id)


@router.delete(
    "/{invoice_id}/items/{item_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_MANAGE_ITEMS))],
)
async def delete_invoice_item(
    invoice_id: UUID,
    item_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await invoice_service.delete_item(db, invoice_id, item_id, context.company_id)
    return await invoice_service.get_invoice(db, invoice_id, context.company_id)


# Payment


@router.post(
    "/{invoice_id}/paid",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_MARK_PAID))],
)
async def mark_invoice_paid(
    invoice_id: UUID,
    payload: MarkPaidRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.mark_paid(
        db,
        invoice_id,
        context.company_id,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
        paid_date=payload.paid_date,
        notes=payload.notes,
    )


@router.post(
    "/{invoice_id}/refund",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permission(Permission.INVOICES_MARK_PAID))],
)
async def refund_invoice(
    invoice_id: UUID,
    payload: RefundRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.refund_invoice(
        db,
        invoice_id,
        context.company_id,
        amount=payload.amount,
        reason=payload.reason,
        method=payload.method,
    )
