"""
Inventory models.

Quantities are tracked per location in ``inventory_location_quantities``.
Quantities may go negative (backorders). Reference data (categories,
subcategories, brands, models) is scoped per company.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from repairtix.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin


def _company_fk() -> Mapped[UUID]:
    return mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )


class InventoryCategory(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "inventory_categories"

    company_id: Mapped[UUID] = _company_fk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class InventorySubcategory(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "inventory_subcategories"

    company_id: Mapped[UUID] = _company_fk()
    category_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class InventoryBrand(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "inventory_brands"

    company_id: Mapped[UUID] = _company_fk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class InventoryModel(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "inventory_models"

    company_id: Mapped[UUID] = _company_fk()
    brand_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_brands.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class InventoryItem(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "inventory_items"
    __table_args__ = (UniqueConstraint("company_id", "sku", name="uq_inventory_items_company_sku"),)

    company_id: Mapped[UUID] = _company_fk()
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_categories.id", ondelete="SET NULL"), nullable=True
    )
    subcategory_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_subcategories.id", ondelete="SET NULL"), nullable=True
    )
    brand_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_brands.id", ondelete="SET NULL"), nullable=True
    )
    model_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_models.id", ondelete="SET NULL"), nullable=True
    )

    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    reorder_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    supplier: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    supplier_part_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    track_quantity: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryItem(sku={self.sku}, name={self.name})>"


class InventoryLocationQuantity(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "inventory_location_quantities"
    __table_args__ = (
        UniqueConstraint("inventory_item_id", "location_id", name="uq_inventory_location_quantities_item_location"),
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class TransferStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InventoryTransfer(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Stock moved between two locations of the same company."""

    __tablename__ = "inventory_transfers"

    company_id: Mapped[UUID] = _company_fk()
    from_location_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False
    )
    to_location_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False
    )
    inventory_item_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    transferred_by: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TransferStatus.PENDING.value, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
