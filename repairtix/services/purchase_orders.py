"""
Purchase order service.

Lifecycle: draft -> ordered -> received, with cancellation allowed until the
order is received. Receiving stocks the order's location and blends the unit
cost into each item's cost price.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, InternalServerError, NotFoundError
from repairtix.models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from repairtix.services import inventory as inventory_service
from repairtix.services import locations as location_service

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 10


async def generate_po_number(db: AsyncSession, company_id: UUID) -> str:
    for _ in range(MAX_NUMBER_ATTEMPTS):
        now = datetime.now(timezone.utc)
        number = f"PO-{now:%Y%m}-{str(int(time.time() * 1000))[-6:]}"
        existing = await db.execute(
            select(PurchaseOrder.id).where(
                PurchaseOrder.company_id == company_id, PurchaseOrder.po_number == number
            )
        )
        if existing.scalar_one_or_none() is None:
            return number
        await asyncio.sleep(0.001)
    raise InternalServerError("Could not allocate a purchase order number")


async def list_purchase_orders(
    db: AsyncSession,
    company_id: UUID,
    status: Optional[str] = None,
    search: Optional[str] = None,
    location_id: Optional[UUID] = None,
) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).where(
        PurchaseOrder.company_id == company_id, PurchaseOrder.deleted_at.is_(None)
    )
    if status:
        stmt = stmt.where(PurchaseOrder.status == status)
    if location_id:
        stmt = stmt.where(PurchaseOrder.location_id == location_id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(PurchaseOrder.po_number.ilike(pattern) | PurchaseOrder.supplier.ilike(pattern))
    result = await db.execute(stmt.order_by(PurchaseOrder.created_at.desc()))
    return list(result.scalars().all())


async def get_purchase_order(db: AsyncSession, po_id: UUID, company_id: UUID) -> PurchaseOrder:
    result = await db.execute(
        select(PurchaseOrder).where(
            PurchaseOrder.id == po_id,
            PurchaseOrder.company_id == company_id,
            PurchaseOrder.deleted_at.is_(None),
        )
    )
    po = result.scalar_one_or_none()
    if po is None:
        raise NotFoundError("Purchase order not found")
    return po


async def _build_items(db: AsyncSession, company_id: UUID, items: list[dict[str, Any]]) -> list[PurchaseOrderItem]:
    if not items:
        raise BadRequestError("Purchase order must have at least one item")

    built = []
    for entry in items:
        try:
            await inventory_service.get_item(db, entry["inventory_item_id"], company_id)
        except NotFoundError:
            raise BadRequestError("Inventory item not found or does not belong to company")
        unit_cost = Decimal(str(entry["unit_cost"]))
        built.append(
            PurchaseOrderItem(
                inventory_item_id=entry["inventory_item_id"],
                quantity_ordered=entry["quantity_ordered"],
                quantity_received=0,
                unit_cost=unit_cost,
                subtotal=unit_cost * entry["quantity_ordered"],
                notes=entry.get("notes"),
            )
        )
    return built


def _total(items: list[PurchaseOrderItem]) -> Decimal:
    return sum((Decimal(item.subtotal) for item in items), Decimal("0"))


async def create_purchase_order(
    db: AsyncSession, company_id: UUID, location_id: UUID, data: dict[str, Any]
) -> PurchaseOrder:
    """
    Create a draft purchase order for a location.

    Raises:
        BadRequestError: No items, unknown inventory items or foreign location
    """
    if not await location_service.location_belongs_to_company(db, location_id, company_id):
        raise BadRequestError("Location not found or does not belong to company")

    items = await _build_items(db, company_id, data.get("items") or [])
    po = PurchaseOrder(
        company_id=company_id,
        location_id=location_id,
        po_number=await generate_po_number(db, company_id),
        supplier=data["supplier"],
        status=PurchaseOrderStatus.DRAFT.value,
        order_date=data.get("order_date") or datetime.now(timezone.utc),
        expected_delivery_date=data.get("expected_delivery_date"),
        notes=data.get("notes"),
        items=items,
        total_amount=_total(items),
    )
    db.add(po)
    await db.commit()
    await db.refresh(po)

    logger.info(f"Created purchase order {po.po_number} for company {company_id}")
    return po


def _require_draft(po: PurchaseOrder, action: str) -> None:
    if po.status != PurchaseOrderStatus.DRAFT.value:
        raise BadRequestError(f"Only draft purchase orders can be {action}")


async def update_purchase_order(
    db: AsyncSession, po_id: UUID, company_id: UUID, data: dict[str, Any]
) -> PurchaseOrder:
    po = await get_purchase_order(db, po_id, company_id)
    _require_draft(po, "updated")

    for field in ("supplier", "order_date", "expected_delivery_date", "notes"):
        if field in data and (data[field] is not None or field in ("expected_delivery_date", "notes")):
            setattr(po, field, data[field])

    if data.get("items") is not None:
        po.items = await _build_items(db, company_id, data["items"])
        po.total_amount = _total(po.items)

    await db.commit()
    await db.refresh(po)
    return po


async def delete_purchase_order(db: AsyncSession, po_id: UUID, company_id: UUID) -> None:
    po = await get_purchase_order(db, po_id, company_id)
    _require_draft(po, "deleted")
    po.soft_delete()
    await db.commit()


async def mark_ordered(db: AsyncSession, po_id: UUID, company_id: UUID) -> PurchaseOrder:
    po = await get_purchase_order(db, po_id, company_id)
    _require_draft(po, "ordered")
    po.status = PurchaseOrderStatus.ORDERED.value
    await db.commit()
    await db.refresh(po)
    return po


async def receive_purchase_order(
    db: AsyncSession, po_id: UUID, company_id: UUID, received: list[dict[str, Any]]
) -> PurchaseOrder:
    """
    Receive an ordered purchase order.

    Args:
        received: ``{"id": <po item id>, "quantity_received": int}`` entries

    Raises:
        BadRequestError: Wrong status, unknown line, negative quantity or more
            than was ordered, or a line listed twice
    """
    po = await get_purchase_order(db, po_id, company_id)
    if po.status != PurchaseOrderStatus.ORDERED.value:
        raise BadRequestError("Only ordered purchase orders can be received")

    lines = {item.id: item for item in po.items}
    line_ids = [entry["id"] for entry in received]
    if len(line_ids) != len(set(line_ids)):
        raise BadRequestError("Each purchase order item can only be received once per request")

    for entry in received:
        line = lines.get(entry["id"])
        if line is None:
            raise BadRequestError(f"Purchase order item {entry['id']} not found")
        quantity = entry["quantity_received"]
        if quantity < 0:
            raise BadRequestError("Quantity received cannot be negative")
        if quantity > line.quantity_ordered:
            raise BadRequestError(
                f"Quantity received ({quantity}) cannot exceed quantity ordered ({line.quantity_ordered})"
            )

    for entry in received:
        line = lines[entry["id"]]
        quantity = entry["quantity_received"]
        line.quantity_received = quantity
        line.subtotal = Decimal(line.unit_cost) * quantity
        if quantity == 0:
            continue

        # Cost blends against the stock on hand before this receipt
        await inventory_service.update_cost_with_dollar_cost_average(
            db, line.inventory_item_id, quantity, line.unit_cost, company_id, po.location_id, commit=False
        )
        await inventory_service.adjust_quantity_for_location(
            db, line.inventory_item_id, po.location_id, quantity, company_id, commit=False
        )

    po.total_amount = _total(po.items)
    po.status = PurchaseOrderStatus.RECEIVED.value
    po.received_date = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(po)

    logger.info(f"Received purchase order {po.po_number}")
    return po


async def cancel_purchase_order(db: AsyncSession, po_id: UUID, company_id: UUID) -> PurchaseOrder:
    po = await get_purchase_order(db, po_id, company_id)
    if po.status in (PurchaseOrderStatus.RECEIVED.value, PurchaseOrderStatus.CANCELLED.value):
        raise BadRequestError(f"Cannot cancel purchase order with status: {po.status}")
    po.status = PurchaseOrderStatus.CANCELLED.value
    await db.commit()
    await db.refresh(po)
    return po
