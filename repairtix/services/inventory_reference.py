"""Categories, subcategories, brands and models used to classify inventory items."""

import logging
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, ConflictError, NotFoundError
from repairtix.models import InventoryBrand, InventoryCategory, InventoryModel, InventorySubcategory

logger = logging.getLogger(__name__)

RefModel = TypeVar("RefModel", InventoryCategory, InventorySubcategory, InventoryBrand, InventoryModel)

# child model -> (parent model, parent column)
_PARENTS: dict[type, tuple[type, str]] = {
    InventorySubcategory: (InventoryCategory, "category_id"),
    InventoryModel: (InventoryBrand, "brand_id"),
}

_LABELS = {
    InventoryCategory: "Category",
    InventorySubcategory: "Subcategory",
    InventoryBrand: "Brand",
    InventoryModel: "Model",
}


async def list_entries(
    db: AsyncSession, model: Type[RefModel], company_id: UUID, parent_id: Optional[UUID] = None
) -> list[RefModel]:
    stmt = select(model).where(model.company_id == company_id, model.deleted_at.is_(None))
    if parent_id is not None and model in _PARENTS:
        stmt = stmt.where(getattr(model, _PARENTS[model][1]) == parent_id)
    result = await db.execute(stmt.order_by(model.name))
    return list(result.scalars().all())


async def get_entry(db: AsyncSession, model: Type[RefModel], entry_id: UUID, company_id: UUID) -> RefModel:
    result = await db.execute(
        select(model).where(
            model.id == entry_id, model.company_id == company_id, model.deleted_at.is_(None)
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError(f"{_LABELS[model]} not found")
    return entry


async def _ensure_parent(db: AsyncSession, model: type, company_id: UUID, parent_id: Optional[UUID]) -> None:
    parent_model, column = _PARENTS[model]
    if parent_id is None:
        raise BadRequestError(f"{column} is required")
    try:
        await get_entry(db, parent_model, parent_id, company_id)
    except NotFoundError:
        raise BadRequestError(f"{_LABELS[parent_model]} not found or does not belong to company")


async def _ensure_unique_name(
    db: AsyncSession,
    model: type,
    company_id: UUID,
    name: str,
    parent_id: Optional[UUID],
    exclude_id: Optional[UUID] = None,
) -> None:
    stmt = select(model.id).where(
        model.company_id == company_id, model.name == name, model.deleted_at.is_(None)
    )
    if model in _PARENTS:
        stmt = stmt.where(getattr(model, _PARENTS[model][1]) == parent_id)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise ConflictError(f"{_LABELS[model]} '{name}' already exists")


async def create_entry(
    db: AsyncSession, model: Type[RefModel], company_id: UUID, data: dict[str, Any]
) -> RefModel:
    name = (data.get("name") or "").strip()
    if not name:
        raise BadRequestError("Name is required")

    parent_id = None
    if model in _PARENTS:
        parent_id = data.get(_PARENTS[model][1])
        await _ensure_parent(db, model, company_id, parent_id)
    await _ensure_unique_name(db, model, company_id, name, parent_id)

    fields = {"company_id": company_id, "name": name}
    if model in _PARENTS:
        fields[_PARENTS[model][1]] = parent_id
    entry = model(**fields)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def update_entry(
    db: AsyncSession, model: Type[RefModel], entry_id: UUID, company_id: UUID, data: dict[str, Any]
) -> RefModel:
    entry = await get_entry(db, model, entry_id, company_id)

    parent_id = None
    if model in _PARENTS:
        column = _PARENTS[model][1]
        parent_id = data.get(column) or getattr(entry, column)
        if parent_id != getattr(entry, column):
            await _ensure_parent(db, model, company_id, parent_id)
            setattr(entry, column, parent_id)

    name = data.get("name")
    if name is not None:
        name = name.strip()
        if not name:
            raise BadRequestError("Name is required")
        await _ensure_unique_name(db, model, company_id, name, parent_id, exclude_id=entry.id)
        entry.name = name

    await db.commit()
    await db.refresh(entry)
    return entry


async def delete_entry(db: AsyncSession, model: Type[RefModel], entry_id: UUID, company_id: UUID) -> None:
    entry = await get_entry(db, model, entry_id, company_id)
    entry.soft_delete()
    await db.commit()


async def check_item_references(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> None:
    """Reject item classification ids that are unknown to the company."""
    for column, model in (
        ("category_id", InventoryCategory),
        ("subcategory_id", InventorySubcategory),
        ("brand_id", InventoryBrand),
        ("model_id", InventoryModel),
    ):
        entry_id = data.get(column)
        if entry_id is None:
            continue
        try:
            await get_entry(db, model, entry_id, company_id)
        except NotFoundError:
            raise BadRequestError(f"{_LABELS[model]} not found or does not belong to company")
