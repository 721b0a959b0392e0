"""
Location service.

The oldest location of a company is always free. While a subscription is
past due, non-free locations are hidden from regular listings.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import UserRole
from repairtix.errors import BadRequestError, ConflictError, NotFoundError
from repairtix.models import (
    InventoryItem,
    InventoryLocationQuantity,
    Location,
    SubscriptionStatus,
    User,
    UserLocation,
)
from repairtix.services import billing as billing_service

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = {
    "name",
    "is_active",
    "is_free",
    "state_tax",
    "county_tax",
    "city_tax",
    "tax_name",
    "tax_enabled",
    "tax_inclusive",
}


def _active(company_id: UUID):
    return select(Location).where(Location.company_id == company_id, Location.deleted_at.is_(None))


async def count_locations(db: AsyncSession, company_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Location.id)).where(
            Location.company_id == company_id, Location.deleted_at.is_(None)
        )
    )
    return int(result.scalar_one())


async def location_belongs_to_company(db: AsyncSession, location_id: UUID, company_id: UUID) -> bool:
    result = await db.execute(_active(company_id).where(Location.id == location_id))
    return result.scalar_one_or_none() is not None


async def user_has_location_access(
    db: AsyncSession, user: User, location_id: UUID, company_id: UUID
) -> bool:
    """
    Whether a user may work in a location.

    Admins and superusers reach every location of the company; other roles
    need an explicit assignment.
    """
    if not await location_belongs_to_company(db, location_id, company_id):
        return False

    if user.role in (UserRole.ADMIN.value, UserRole.SUPERUSER.value):
        return True

    result = await db.execute(
        select(UserLocation.id).where(
            UserLocation.user_id == user.id,
            UserLocation.location_id == location_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def list_locations(
    db: AsyncSession, company_id: UUID, include_restricted: bool = False
) -> list[Location]:
    """Locations oldest first; repairs the first-location-is-free invariant."""
    result = await db.execute(_active(company_id).order_by(Location.created_at, Location.name))
    locations = list(result.scalars().all())

    if locations and not locations[0].is_free:
        locations[0].is_free = True
        await db.commit()

    if not include_restricted:
        subscription = await billing_service.get_subscription(db, company_id)
        if subscription and subscription.status == SubscriptionStatus.PAST_DUE.value:
            locations = [location for location in locations if location.is_free]

    return locations


async def get_location(db: AsyncSession, location_id: UUID, company_id: UUID) -> Location:
    result = await db.execute(_active(company_id).where(Location.id == location_id))
    location = result.scalar_one_or_none()
    if location is None:
        raise NotFoundError("Location not found")
    return location


async def _ensure_unique_name(
    db: AsyncSession, company_id: UUID, name: str, exclude_id: Optional[UUID] = None
) -> None:
    stmt = _active(company_id).where(func.lower(Location.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Location.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise ConflictError(f"Location with name '{name}' already exists")


async def create_location(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> Location:
    """
    Create a location and seed zero stock rows for every existing item.

    The first location of a company is free no matter what is requested.
    """
    await _ensure_unique_name(db, company_id, data["name"])

    is_first = await count_locations(db, company_id) == 0
    fields = {k: v for k, v in data.items() if v is not None}
    fields["is_free"] = True if is_first else bool(data.get("is_free") or False)

    location = Location(company_id=company_id, **fields)
    db.add(location)
    await db.flush()

    items = await db.execute(
        select(InventoryItem.id).where(
            InventoryItem.company_id == company_id, InventoryItem.deleted_at.is_(None)
        )
    )
    for item_id in items.scalars().all():
        db.add(InventoryLocationQuantity(inventory_item_id=item_id, location_id=location.id, quantity=0))

    await db.commit()
    await db.refresh(location)

    await billing_service.recalculate_subscription_amount(db, company_id)
    logger.info(f"Created location {location.id} for company {company_id}")
    return location


async def update_location(
    db: AsyncSession, location_id: UUID, company_id: UUID, data: dict[str, Any]
) -> Location:
    location = await get_location(db, location_id, company_id)

    if data.get("name") and data["name"] != location.name:
        await _ensure_unique_name(db, company_id, data["name"], exclude_id=location.id)

    free_changed = "is_free" in data and data["is_free"] is not None and data["is_free"] != location.is_free
    if free_changed and not data["is_free"]:
        await _ensure_not_first(db, location, company_id)

    for field, value in data.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(location, field, value)

    await db.commit()
    await db.refresh(location)

    if free_changed:
        await billing_service.recalculate_subscription_amount(db, company_id)
    return location


async def _ensure_not_first(db: AsyncSession, location: Location, company_id: UUID) -> None:
    result = await db.execute(_active(company_id).order_by(Location.created_at, Location.name).limit(1))
    first = result.scalar_one_or_none()
    if first is not None and first.id == location.id:
        raise BadRequestError("The first location must always be free")


async def set_location_free(
    db: AsyncSession, location_id: UUID, company_id: UUID, is_free: bool
) -> Location:
    """Toggle billing for a location and recalculate the subscription amount."""
    location = await get_location(db, location_id, company_id)
    if not is_free:
        await _ensure_not_first(db, location, company_id)

    location.is_free = is_free
    await db.commit()
    await db.refresh(location)

    await billing_service.recalculate_subscription_amount(db, company_id)
    return location


async def delete_location(db: AsyncSession, location_id: UUID, company_id: UUID) -> None:
    location = await get_location(db, location_id, company_id)
    location.soft_delete()
    await db.commit()
    await billing_service.recalculate_subscription_amount(db, company_id)
