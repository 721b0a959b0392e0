"""Inventory transfer API routes (managers and admins move stock between locations)."""

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
    require_manager_or_admin,
    require_permission,
)
from repairtix.models import TransferStatus
from repairtix.services import inventory_transfers as transfer_service

router = APIRouter(prefix="/api/inventory-transfers", tags=["inventory-transfers"])


class TransferCreate(BaseModel):
    from_location_id: Optional[UUID] = None
    to_location_id: UUID
    inventory_item_id: UUID
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None


class TransferResponse(BaseModel):
    id: UUID
    from_location_id: UUID
    to_location_id: UUID
    inventory_item_id: UUID
    quantity: int
    transferred_by: UUID
    status: str
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


@router.get(
    "",
    response_model=List[TransferResponse],
    dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
)
async def list_transfers(
    status: Optional[TransferStatus] = None,
    from_location_id: Optional[UUID] = None,
    to_location_id: Optional[UUID] = None,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.list_transfers(
        db,
        context.company_id,
        status=status.value if status else None,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
    )


@router.get(
    "/{transfer_id}",
    response_model=TransferResponse,
    dependencies=[Depends(require_permission(Permission.INVENTORY_READ))],
)
async def get_transfer(
    transfer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.get_transfer(db, transfer_id, context.company_id)


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_manager_or_admin())],
)
async def create_transfer(
    payload: TransferCreate,
    context: TenantContext = Depends(optional_location_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Send stock to another location. The source defaults to the caller's
    current location.
    """
    from_location_id = payload.from_location_id or context.location_id
    if from_location_id is None:
        raise BadRequestError("From location is required")

    return await transfer_service.create_transfer(
        db,
        context.company_id,
        context.user.id,
        from_location_id=from_location_id,
        to_location_id=payload.to_location_id,
        inventory_item_id=payload.inventory_item_id,
        quantity=payload.quantity,
        notes=payload.notes,
    )


@router.post(
    "/{transfer_id}/complete",
    response_model=TransferResponse,
    dependencies=[Depends(require_manager_or_admin())],
)
async def complete_transfer(
    transfer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.complete_transfer(db, transfer_id, context.company_id)


@router.post(
    "/{transfer_id}/cancel",
    response_model=TransferResponse,
    dependencies=[Depends(require_manager_or_admin())],
)
async def cancel_transfer(
    transfer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.cancel_transfer(db, transfer_id, context.company_id)
