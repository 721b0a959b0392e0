"""
Inventory transfers between locations of one company.

Stock leaves the source location when the transfer is created and arrives at
the destination when it is completed. Cancelling a pending transfer returns
the stock to the source.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, NotFoundError
from repairtix.models import InventoryTransfer, TransferStatus
from repairtix.services import inventory as inventory_service
from repairtix.services import locations as location_service

logger = logging.getLogger(__name__)


async def list_transfers(
    db: AsyncSession,
    company_id: UUID,
    status: Optional[str] = None,
    from_location_id: Optional[UUID] = None,
    to_location_id: Optional[UUID] = None,
) -> list[InventoryTransfer]:
    stmt = select(InventoryTransfer).where(
        InventoryTransfer.company_id == company_id, InventoryTransfer.deleted_at.is_(None)
    )
    if status:
        stmt = stmt.where(InventoryTransfer.status == status)
    if from_location_id:
        stmt = stmt.where(InventoryTransfer.from_location_id == from_location_id)
    if to_location_id:
        stmt = stmt.where(InventoryTransfer.to_location_id == to_location_id)
    result = await db.execute(stmt.order_by(InventoryTransfer.created_at.desc()))
    return list(result.scalars().all())


async def get_transfer(db: AsyncSession, transfer_id: UUID, company_id: UUID) -> InventoryTransfer:
    result = await db.execute(
        select(InventoryTransfer).where(
            InventoryTransfer.id == transfer_id,
            InventoryTransfer.company_id == company_id,
            InventoryTransfer.deleted_at.is_(None),
        )
    )
    transfer = result.scalar_one_or_none()
    if transfer is None:
        raise NotFoundError("Inventory transfer not found")
    return transfer


async def create_transfer(
    db: AsyncSession,
    company_id: UUID,
    transferred_by: UUID,
    *,
    from_location_id: UUID,
    to_location_id: UUID,
    inventory_item_id: UUID,
    quantity: int,
    notes: Optional[str] = None,
) -> InventoryTransfer:
    """
    Create a pending transfer and take the stock out of the source location.

    Raises:
        BadRequestError: Same source and destination, non-positive quantity,
            foreign location or item, or not enough stock at the source
    """
    if from_location_id == to_location_id:
        raise BadRequestError("From and to locations must be different")
    if quantity <= 0:
        raise BadRequestError("Quantity must be greater than 0")

    if not await location_service.location_belongs_to_company(db, from_location_id, company_id):
        raise BadRequestError("From location not found or does not belong to company")
    if not await location_service.location_belongs_to_company(db, to_location_id, company_id):
        raise BadRequestError("To location not found or does not belong to company")

    try:
        await inventory_service.get_item(db, inventory_item_id, company_id)
    except NotFoundError:
        raise BadRequestError("Inventory item not found or does not belong to company")

    available = await inventory_service.get_quantity_for_location(
        db, inventory_item_id, from_location_id, company_id
    )
    if available < quantity:
        raise BadRequestError(f"Insufficient quantity. Available: {available}, Requested: {quantity}")

    transfer = InventoryTransfer(
        company_id=company_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        inventory_item_id=inventory_item_id,
        quantity=quantity,
        transferred_by=transferred_by,
        status=TransferStatus.PENDING.value,
        notes=notes,
    )
    db.add(transfer)
    await inventory_service.adjust_quantity_for_location(
        db, inventory_item_id, from_location_id, -quantity, company_id, commit=False
    )
    await db.commit()
    await db.refresh(transfer)

    logger.info(f"Created transfer {transfer.id}: {quantity} x {inventory_item_id} {from_location_id} -> {to_location_id}")
    return transfer


async def _pending(
    db: AsyncSession, transfer_id: UUID, company_id: UUID, action: str, done: str
) -> InventoryTransfer:
    transfer = await get_transfer(db, transfer_id, company_id)
    if transfer.status != TransferStatus.PENDING.value:
        raise BadRequestError(
            f'Cannot {action} transfer with status "{transfer.status}". '
            f"Only pending transfers can be {done}."
        )
    return transfer


async def complete_transfer(db: AsyncSession, transfer_id: UUID, company_id: UUID) -> InventoryTransfer:
    transfer = await _pending(db, transfer_id, company_id, "complete", "completed")
    try:
        await inventory_service.get_item(db, transfer.inventory_item_id, company_id)
    except NotFoundError:
        raise BadRequestError("Inventory item not found")

    await inventory_service.adjust_quantity_for_location(
        db, transfer.inventory_item_id, transfer.to_location_id, transfer.quantity, company_id, commit=False
    )
    transfer.status = TransferStatus.COMPLETED.value
    await db.commit()
    await db.refresh(transfer)
    return transfer


async def cancel_transfer(db: AsyncSession, transfer_id: UUID, company_id: UUID) -> InventoryTransfer:
    transfer = await _pending(db, transfer_id, company_id, "cancel", "cancelled")
    await inventory_service.adjust_quantity_for_location(
        db, transfer.inventory_item_id, transfer.from_location_id, transfer.quantity, company_id, commit=False
    )
    transfer.status = TransferStatus.CANCELLED.value
    await db.commit()
    await db.refresh(transfer)
    return transfer
