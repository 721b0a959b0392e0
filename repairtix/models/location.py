"""
Location model.

A company operates one or more shop locations. Each location carries its own
sales-tax configuration. The first location of a company is free; every
other location adds to the monthly subscription unless marked free.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from repairtix.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin, utc_now


class Location(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "locations"

    company_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_free: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Sales tax, in percent
    state_tax: Mapped[Decimal] = mapped_column(Numeric(6, 3), default=Decimal("0"), nullable=False)
    county_tax: Mapped[Decimal] = mapped_column(Numeric(6, 3), default=Decimal("0"), nullable=False)
    city_tax: Mapped[Decimal] = mapped_column(Numeric(6, 3), default=Decimal("0"), nullable=False)
    tax_name: Mapped[str] = mapped_column(String(100), default="Sales Tax", nullable=False)
    tax_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tax_inclusive: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def tax_rate(self) -> Decimal:
        """Combined tax rate in percent (zero when tax is disabled)."""
        if not self.tax_enabled:
            return Decimal("0")
        return (
            Decimal(self.state_tax or 0) + Decimal(self.county_tax or 0) + Decimal(self.city_tax or 0)
        )

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name={self.name}, company_id={self.company_id})>"


class UserLocation(UUIDPrimaryKeyMixin, Base):
    """Assignment of a user to a location they may work in."""

    __tablename__ = "user_locations"
    __table_args__ = (UniqueConstraint("user_id", "location_id", name="uq_user_locations_user_location"),)

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
