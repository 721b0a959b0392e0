"""Customer and customer asset (device) service."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, ConflictError, NotFoundError
from repairtix.models import Asset, Customer

logger = logging.getLogger(__name__)


async def list_customers(
    db: AsyncSession,
    company_id: UUID,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Customer]:
    stmt = select(Customer).where(Customer.company_id == company_id, Customer.deleted_at.is_(None))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    result = await db.execute(
        stmt.order_by(Customer.last_name, Customer.first_name).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


async def get_customer(db: AsyncSession, customer_id: UUID, company_id: UUID) -> Customer:
    result = await db.execute(
        select(Customer).where(
            Customer.id == customer_id,
            Customer.company_id == company_id,
            Customer.deleted_at.is_(None),
        )
    )
    customer = result.scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


async def create_customer(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> Customer:
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    customer = Customer(company_id=company_id, **data)
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


async def update_customer(
    db: AsyncSession, customer_id: UUID, company_id: UUID, data: dict[str, Any]
) -> Customer:
    customer = await get_customer(db, customer_id, company_id)
    for field, value in data.items():
        if field in ("first_name", "last_name") and not value:
            continue
        setattr(customer, field, value)
    await db.commit()
    await db.refresh(customer)
    return customer


async def delete_customer(db: AsyncSession, customer_id: UUID, company_id: UUID) -> None:
    customer = await get_customer(db, customer_id, company_id)
    customer.soft_delete()
    await db.commit()
    logger.info(f"Deleted customer {customer_id} in company {company_id}")


# Assets


async def _ensure_unique_serial(
    db: AsyncSession,
    company_id: UUID,
    customer_id: UUID,
    serial_number: Optional[str],
    exclude_id: Optional[UUID] = None,
) -> None:
    if not serial_number:
        return
    stmt = select(Asset.id).where(
        Asset.company_id == company_id,
        Asset.customer_id == customer_id,
        Asset.serial_number == serial_number,
        Asset.deleted_at.is_(None),
    )
    if exclude_id is not None:
        stmt = stmt.where(Asset.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise ConflictError("An asset with this serial number already exists for this customer")


async def list_assets(db: AsyncSession, company_id: UUID, customer_id: UUID) -> list[Asset]:
    await get_customer(db, customer_id, company_id)
    result = await db.execute(
        select(Asset)
        .where(
            Asset.company_id == company_id,
            Asset.customer_id == customer_id,
            Asset.deleted_at.is_(None),
        )
        .order_by(Asset.created_at.desc())
    )
    return list(result.scalars().all())


async def get_asset(db: AsyncSession, asset_id: UUID, company_id: UUID) -> Asset:
    result = await db.execute(
        select(Asset).where(
            Asset.id == asset_id,
            Asset.company_id == company_id,
            Asset.deleted_at.is_(None),
        )
    )
    asset = result.scalar_one_or_none()
    if asset is None:
        raise NotFoundError("Asset not found")
    return asset


async def create_asset(
    db: AsyncSession, company_id: UUID, customer_id: UUID, data: dict[str, Any]
) -> Asset:
    """
    Register a device for a customer.

    Raises:
        BadRequestError: If the customer is not in the company
        ConflictError: If the customer already has a device with this serial
    """
    try:
        await get_customer(db, customer_id, company_id)
    except NotFoundError:
        raise BadRequestError("Customer not found or does not belong to company")

    data = {k: (v or None) if k != "device_type" else v for k, v in data.items()}
    await _ensure_unique_serial(db, company_id, customer_id, data.get("serial_number"))

    asset = Asset(company_id=company_id, customer_id=customer_id, **data)
    db.add(asset)
    await db.commit()
    await db.refresh(asset)
    return asset


async def update_asset(db: AsyncSession, asset_id: UUID, company_id: UUID, data: dict[str, Any]) -> Asset:
    asset = await get_asset(db, asset_id, company_id)

    if "serial_number" in data:
        data["serial_number"] = data["serial_number"] or None
        if data["serial_number"] != asset.serial_number:
            await _ensure_unique_serial(
                db, company_id, asset.customer_id, data["serial_number"], exclude_id=asset.id
            )

    for field, value in data.items():
        if field == "device_type" and not value:
            continue
        setattr(asset, field, value if field == "device_type" else (value or None))
    await db.commit()
    await db.refresh(asset)
    return asset


async def delete_asset(db: AsyncSession, asset_id: UUID, company_id: UUID) -> None:
    asset = await get_asset(db, asset_id, company_id)
    asset.soft_delete()
    await db.commit()
