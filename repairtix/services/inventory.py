"""
Inventory item service.

An item is defined once per company (unique SKU) and its stock is tracked per
location. Items with ``track_quantity`` off (labour, services) never change
stock.
"""

import logging
import secrets
import time
from collections import defaultdict
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, InternalServerError, NotFoundError
from repairtix.models import InventoryItem, InventoryLocationQuantity, Location
from repairtix.services import inventory_reference
from repairtix.services import locations as location_service

logger = logging.getLogger(__name__)

MAX_SKU_ATTEMPTS = 10


async def _sku_taken(
    db: AsyncSession, company_id: UUID, sku: str, exclude_id: Optional[UUID] = None
) -> bool:
    stmt = select(InventoryItem.id).where(
        InventoryItem.company_id == company_id,
        InventoryItem.sku == sku,
        InventoryItem.deleted_at.is_(None),
    )
    if exclude_id is not None:
        stmt = stmt.where(InventoryItem.id != exclude_id)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def generate_unique_sku(db: AsyncSession, company_id: UUID) -> str:
    for _ in range(MAX_SKU_ATTEMPTS):
        timestamp = str(int(time.time() * 1000))[-8:]
        sku = f"SKU-{timestamp}-{secrets.randbelow(1000):03d}"
        if not await _sku_taken(db, company_id, sku):
            return sku
    raise InternalServerError("Could not allocate a unique SKU")


async def list_items(
    db: AsyncSession,
    company_id: UUID,
    search: Optional[str] = None,
    active_only: bool = False,
) -> list[InventoryItem]:
    stmt = select(InventoryItem).where(
        InventoryItem.company_id == company_id, InventoryItem.deleted_at.is_(None)
    )
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                InventoryItem.sku.ilike(pattern),
                InventoryItem.name.ilike(pattern),
                InventoryItem.description.ilike(pattern),
            )
        )
    if active_only:
        stmt = stmt.where(InventoryItem.is_active.is_(True))
    result = await db.execute(stmt.order_by(InventoryItem.name))
    return list(result.scalars().all())


async def get_item(db: AsyncSession, item_id: UUID, company_id: UUID) -> InventoryItem:
    result = await db.execute(
        select(InventoryItem).where(
            InventoryItem.id == item_id,
            InventoryItem.company_id == company_id,
            InventoryItem.deleted_at.is_(None),
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


async def get_location_quantities(
    db: AsyncSession, item_ids: list[UUID], location_id: Optional[UUID] = None
) -> dict[UUID, dict[UUID, int]]:
    """item id -> {location id -> quantity}."""
    if not item_ids:
        return {}
    stmt = select(InventoryLocationQuantity).where(
        InventoryLocationQuantity.inventory_item_id.in_(item_ids)
    )
    if location_id is not None:
        stmt = stmt.where(InventoryLocationQuantity.location_id == location_id)

    quantities: dict[UUID, dict[UUID, int]] = defaultdict(dict)
    for row in (await db.execute(stmt)).scalars().all():
        quantities[row.inventory_item_id][row.location_id] = row.quantity
    return quantities


async def create_item(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> InventoryItem:
    """
    Create an item with a zero stock row at every location.

    Raises:
        BadRequestError: If the SKU is already used in the company
    """
    data = dict(data)
    initial_quantity = data.pop("initial_quantity", None)
    initial_location_id = data.pop("location_id", None)

    sku = (data.pop("sku", None) or "").strip()
    if not sku:
        sku = await generate_unique_sku(db, company_id)
    elif await _sku_taken(db, company_id, sku):
        raise BadRequestError(f"SKU {sku} already exists in this company")

    await inventory_reference.check_item_references(db, company_id, data)

    if initial_location_id and not await location_service.location_belongs_to_company(
        db, initial_location_id, company_id
    ):
        raise BadRequestError("Location not found or does not belong to company")

    item = InventoryItem(company_id=company_id, sku=sku, **{k: v for k, v in data.items() if v is not None})
    db.add(item)
    await db.flush()

    locations = await db.execute(
        select(Location.id).where(Location.company_id == company_id, Location.deleted_at.is_(None))
    )
    for location_id in locations.scalars().all():
        quantity = initial_quantity if (initial_quantity and location_id == initial_location_id) else 0
        db.add(InventoryLocationQuantity(inventory_item_id=item.id, location_id=location_id, quantity=quantity))

    await db.commit()
    await db.refresh(item)
    logger.info(f"Created inventory item {item.sku} in company {company_id}")
    return item


async def update_item(db: AsyncSession, item_id: UUID, company_id: UUID, data: dict[str, Any]) -> InventoryItem:
    item = await get_item(db, item_id, company_id)

    sku = data.get("sku")
    if sku is not None and sku != item.sku:
        if not sku.strip():
            raise BadRequestError("SKU cannot be empty")
        if await _sku_taken(db, company_id, sku, exclude_id=item.id):
            raise BadRequestError(f"SKU {sku} already exists in this company")

    await inventory_reference.check_item_references(db, company_id, data)

    for field, value in data.items():
        if value is None and field in ("sku", "name", "cost_price", "selling_price", "reorder_level",
                                       "is_taxable", "track_quantity", "is_active"):
            continue
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, item_id: UUID, company_id: UUID) -> None:
    """
    Soft delete an item.

    Raises:
        BadRequestError: While any location still holds stock
    """
    item = await get_item(db, item_id, company_id)
    quantities = await get_location_quantities(db, [item.id])
    if any(qty != 0 for qty in quantities.get(item.id, {}).values()):
        raise BadRequestError(
            "Cannot delete inventory item with non-zero quantity. All location quantities must be 0."
        )
    item.soft_delete()
    await db.commit()


async def _quantity_row(
    db: AsyncSession, item_id: UUID, location_id: UUID
) -> Optional[InventoryLocationQuantity]:
    result = await db.execute(
        select(InventoryLocationQuantity).where(
            InventoryLocationQuantity.inventory_item_id == item_id,
            InventoryLocationQuantity.location_id == location_id,
        )
    )
    return result.scalar_one_or_none()


async def get_quantity_for_location(
    db: AsyncSession, item_id: UUID, location_id: UUID, company_id: UUID
) -> int:
    await get_item(db, item_id, company_id)
    row = await _quantity_row(db, item_id, location_id)
    return row.quantity if row else 0


async def set_quantity_for_location(
    db: AsyncSession, item_id: UUID, location_id: UUID, quantity: int, company_id: UUID
) -> int:
    """Overwrite stock at a location (stock count correction)."""
    await get_item(db, item_id, company_id)
    if not await location_service.location_belongs_to_company(db, location_id, company_id):
        raise BadRequestError("Location not found or does not belong to company")

    row = await _quantity_row(db, item_id, location_id)
    if row is None:
        row = InventoryLocationQuantity(inventory_item_id=item_id, location_id=location_id, quantity=quantity)
        db.add(row)
    else:
        row.quantity = quantity
    await db.commit()
    return quantity


async def adjust_quantity_for_location(
    db: AsyncSession,
    item_id: UUID,
    location_id: UUID,
    delta: int,
    company_id: UUID,
    commit: bool = True,
) -> int:
    """
    Add ``delta`` to the stock at a location and return the new quantity.

    Negative results are allowed (backorders). Items that do not track
    quantity are left untouched.
    """
    item = await get_item(db, item_id, company_id)
    if not await location_service.location_belongs_to_company(db, location_id, company_id):
        raise BadRequestError("Location not found or does not belong to company")

    row = await _quantity_row(db, item_id, location_id)
    if not item.track_quantity:
        return row.quantity if row else 0

    if row is None:
        row = InventoryLocationQuantity(inventory_item_id=item_id, location_id=location_id, quantity=0)
        db.add(row)
    row.quantity = (row.quantity or 0) + delta

    if commit:
        await db.commit()
    else:
        await db.flush()
    return row.quantity


def dollar_cost_average(
    current_quantity: int, current_cost: Decimal, received_quantity: int, received_cost: Decimal
) -> Decimal:
    """Weighted average cost after receiving stock. No stock on hand means the new cost wins."""
    if current_quantity <= 0:
        return Decimal(received_cost).quantize(Decimal("0.01"))
    total = Decimal(current_quantity) * Decimal(current_cost) + Decimal(received_quantity) * Decimal(received_cost)
    return (total / Decimal(current_quantity + received_quantity)).quantize(Decimal("0.01"))


async def update_cost_with_dollar_cost_average(
    db: AsyncSession,
    item_id: UUID,
    received_quantity: int,
    received_cost: Decimal,
    company_id: UUID,
    location_id: UUID,
    commit: bool = True,
) -> InventoryItem:
    """Blend the received cost into the item cost using stock at the receiving location."""
    item = await get_item(db, item_id, company_id)
    if not item.track_quantity:
        return item

    row = await _quantity_row(db, item_id, location_id)
    current_quantity = row.quantity if row else 0
    item.cost_price = dollar_cost_average(
        current_quantity, Decimal(item.cost_price), received_quantity, Decimal(received_cost)
    )

    if commit:
        await db.commit()
    else:
        await db.flush()
    return item
