"""Initial RepairTix schema

Revision ID: 001
Revises:
Create Date: 2026-01-01 00:00:00.000000

Creates the multi-tenant schema:
- Companies (tenants), locations and user/location assignments
- Users, role assignments, per-company role permissions, invitations
- Customers, assets and repair tickets
- Inventory reference data, items, per-location quantities and transfers
- Purchase orders and invoices with their line items
- Subscriptions and subscription payments
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamps(soft_delete: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if soft_delete:
        columns.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0")


def _company_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE")


def upgrade() -> None:
    # Companies
    op.create_table(
        "companies",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subdomain", sa.String(100), nullable=False, unique=True),
        sa.Column("plan", sa.String(50), nullable=False, server_default="free"),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("settings", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_companies_name", "companies", ["name"])
    op.create_index("ix_companies_subdomain", "companies", ["subdomain"])

    # Locations
    op.create_table(
        "locations",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("state_tax", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column("county_tax", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column("city_tax", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column("tax_name", sa.String(100), nullable=False, server_default="Sales Tax"),
        sa.Column("tax_enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("tax_inclusive", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        _company_fk(),
    )
    op.create_index("ix_locations_company_id", "locations", ["company_id"])

    # Users
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=True),  # NULL for superusers
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="technician"),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default="true"),
        _uuid("current_location_id", nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["current_location_id"], ["locations.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_users_company_id", "users", ["company_id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_is_active", "users", ["is_active"])

    op.create_table(
        "user_locations",
        _uuid("id", primary_key=True),
        _uuid("user_id", nullable=False),
        _uuid("location_id", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "location_id", name="uq_user_locations_user_location"),
    )
    op.create_index("ix_user_locations_user_id", "user_locations", ["user_id"])
    op.create_index("ix_user_locations_location_id", "user_locations", ["location_id"])

    # Roles and permissions
    op.create_table(
        "user_roles",
        _uuid("id", primary_key=True),
        _uuid("user_id", nullable=False),
        _uuid("company_id", nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        _company_fk(),
        sa.UniqueConstraint("user_id", "role", "company_id", name="uq_user_roles_user_role_company"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
    op.create_index("ix_user_roles_company_id", "user_roles", ["company_id"])

    op.create_table(
        "role_permissions",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("permission", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        _company_fk(),
        sa.UniqueConstraint(
            "company_id", "role", "permission", name="uq_role_permissions_company_role_permission"
        ),
    )
    op.create_index("ix_role_permissions_company_id", "role_permissions", ["company_id"])
    op.create_index("ix_role_permissions_role", "role_permissions", ["role"])

    op.create_table(
        "invitations",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="technician"),
        _uuid("invited_by", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_invitations_company_id", "invitations", ["company_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_token", "invitations", ["token"])

    # Customers, assets and tickets
    op.create_table(
        "customers",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _company_fk(),
    )
    op.create_index("ix_customers_company_id", "customers", ["company_id"])
    op.create_index("ix_customers_email", "customers", ["email"])

    op.create_table(
        "assets",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("customer_id", nullable=False),
        sa.Column("device_type", sa.String(100), nullable=False),
        sa.Column("device_brand", sa.String(100), nullable=True),
        sa.Column("device_model", sa.String(100), nullable=True),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_assets_company_id", "assets", ["company_id"])
    op.create_index("ix_assets_customer_id", "assets", ["customer_id"])
    op.create_index(
        "ix_assets_company_customer_serial", "assets", ["company_id", "customer_id", "serial_number"]
    )

    op.create_table(
        "tickets",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("location_id", nullable=False),
        sa.Column("ticket_number", sa.String(50), nullable=False),
        _uuid("customer_id", nullable=False),
        _uuid("asset_id", nullable=True),
        _uuid("technician_id", nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("device_type", sa.String(100), nullable=False),
        sa.Column("device_brand", sa.String(100), nullable=True),
        sa.Column("device_model", sa.String(100), nullable=True),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("issue_description", sa.Text(), nullable=False),
        sa.Column("diagnostic_notes", sa.Text(), nullable=True),
        sa.Column("repair_notes", sa.Text(), nullable=True),
        sa.Column("estimated_completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("company_id", "ticket_number", name="uq_tickets_company_number"),
    )
    op.create_index("ix_tickets_company_id", "tickets", ["company_id"])
    op.create_index("ix_tickets_location_id", "tickets", ["location_id"])
    op.create_index("ix_tickets_customer_id", "tickets", ["customer_id"])
    op.create_index("ix_tickets_technician_id", "tickets", ["technician_id"])
    op.create_index("ix_tickets_status", "tickets", ["status"])

    # Inventory reference data
    op.create_table(
        "inventory_categories",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
        _company_fk(),
    )
    op.create_index("ix_inventory_categories_company_id", "inventory_categories", ["company_id"])

    op.create_table(
        "inventory_subcategories",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("category_id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["category_id"], ["inventory_categories.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_inventory_subcategories_company_id", "inventory_subcategories", ["company_id"])

    op.create_table(
        "inventory_brands",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
        _company_fk(),
    )
    op.create_index("ix_inventory_brands_company_id", "inventory_brands", ["company_id"])

    op.create_table(
        "inventory_models",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("brand_id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["brand_id"], ["inventory_brands.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_inventory_models_company_id", "inventory_models", ["company_id"])

    # Inventory
    op.create_table(
        "inventory_items",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _uuid("category_id", nullable=True),
        _uuid("subcategory_id", nullable=True),
        _uuid("brand_id", nullable=True),
        _uuid("model_id", nullable=True),
        _money("cost_price"),
        _money("selling_price"),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("supplier_part_number", sa.String(100), nullable=True),
        sa.Column("is_taxable", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("track_quantity", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["category_id"], ["inventory_categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["subcategory_id"], ["inventory_subcategories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["brand_id"], ["inventory_brands.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["model_id"], ["inventory_models.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("company_id", "sku", name="uq_inventory_items_company_sku"),
    )
    op.create_index("ix_inventory_items_company_id", "inventory_items", ["company_id"])

    op.create_table(
        "inventory_location_quantities",
        _uuid("id", primary_key=True),
        _uuid("inventory_item_id", nullable=False),
        _uuid("location_id", nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(soft_delete=False),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "inventory_item_id", "location_id", name="uq_inventory_location_quantities_item_location"
        ),
    )
    op.create_index(
        "ix_inventory_location_quantities_inventory_item_id",
        "inventory_location_quantities",
        ["inventory_item_id"],
    )
    op.create_index(
        "ix_inventory_location_quantities_location_id", "inventory_location_quantities", ["location_id"]
    )

    op.create_table(
        "inventory_transfers",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("from_location_id", nullable=False),
        _uuid("to_location_id", nullable=False),
        _uuid("inventory_item_id", nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _uuid("transferred_by", nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["from_location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["to_location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["transferred_by"], ["users.id"]),
    )
    op.create_index("ix_inventory_transfers_company_id", "inventory_transfers", ["company_id"])

    # Purchase orders
    op.create_table(
        "purchase_orders",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("location_id", nullable=False),
        sa.Column("po_number", sa.String(50), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _money("total_amount"),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.UniqueConstraint("company_id", "po_number", name="uq_purchase_orders_company_number"),
    )
    op.create_index("ix_purchase_orders_company_id", "purchase_orders", ["company_id"])
    op.create_index("ix_purchase_orders_location_id", "purchase_orders", ["location_id"])

    op.create_table(
        "purchase_order_items",
        _uuid("id", primary_key=True),
        _uuid("purchase_order_id", nullable=False),
        _uuid("inventory_item_id", nullable=False),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.Column("quantity_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(soft_delete=False),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
    )
    op.create_index("ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"])

    # Invoices
    op.create_table(
        "invoices",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False),
        _uuid("location_id", nullable=False),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        _uuid("customer_id", nullable=False),
        _uuid("ticket_id", nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        _money("subtotal"),
        sa.Column("tax_rate", sa.Numeric(6, 3), nullable=False, server_default="0"),
        _money("tax_amount"),
        _money("discount_amount"),
        _money("total_amount"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        _money("refund_amount"),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("refund_method", sa.String(50), nullable=True),
        *_timestamps(),
        _company_fk(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
    )
    op.create_index("ix_invoices_company_id", "invoices", ["company_id"])
    op.create_index("ix_invoices_location_id", "invoices", ["location_id"])
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "invoice_items",
        _uuid("id", primary_key=True),
        _uuid("invoice_id", nullable=False),
        _uuid("inventory_item_id", nullable=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _money("unit_price"),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        _money("discount_amount"),
        _money("subtotal"),
        sa.Column("type", sa.String(20), nullable=False, server_default="service"),
        sa.Column("is_taxable", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(soft_delete=False),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])

    # Billing
    op.create_table(
        "subscriptions",
        _uuid("id", primary_key=True),
        _uuid("company_id", nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _money("monthly_amount"),
        sa.Column("billing_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("autopay_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("payment_customer_id", sa.String(255), nullable=True),
        sa.Column("payment_card_id", sa.String(255), nullable=True),
        *_timestamps(),
        _company_fk(),
    )

    op.create_table(
        "subscription_payments",
        _uuid("id", primary_key=True),
        _uuid("subscription_id", nullable=False),
        _uuid("company_id", nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("billing_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("billing_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        *_timestamps(soft_delete=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"], ondelete="CASCADE"),
        _company_fk(),
        sa.UniqueConstraint(
            "subscription_id", "billing_period_start", name="uq_subscription_payments_period"
        ),
    )
    op.create_index(
        "ix_subscription_payments_subscription_id", "subscription_payments", ["subscription_id"]
    )
    op.create_index("ix_subscription_payments_company_id", "subscription_payments", ["company_id"])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table("subscription_payments")
    op.drop_table("subscriptions")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("purchase_order_items")
    op.drop_table("purchase_orders")
    op.drop_table("inventory_transfers")
    op.drop_table("inventory_location_quantities")
    op.drop_table("inventory_items")
    op.drop_table("inventory_models")
    op.drop_table("inventory_brands")
    op.drop_table("inventory_subcategories")
    op.drop_table("inventory_categories")
    op.drop_table("tickets")
    op.drop_table("assets")
    op.drop_table("customers")
    op.drop_table("invitations")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("user_locations")
    op.drop_table("users")
    op.drop_table("locations")
    op.drop_table("companies")
