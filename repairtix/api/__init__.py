"""
RepairTix API routes.

Provides REST API endpoints for:
- Authentication (register, login, token refresh)
- Companies, locations, users, roles and permissions
- Invitations and third-party integrations
- Customers, assets and repair tickets
- Inventory, transfers and purchase orders
- Invoices and subscription billing
"""

from repairtix.api.assets import router as assets_router
from repairtix.api.auth import router as auth_router
from repairtix.api.billing import router as billing_router
from repairtix.api.companies import router as companies_router
from repairtix.api.customers import router as customers_router
from repairtix.api.integrations import router as integrations_router
from repairtix.api.inventory import router as inventory_router
from repairtix.api.inventory_reference import (
    brands_router,
    categories_router,
    models_router,
    subcategories_router,
)
from repairtix.api.inventory_transfers import router as inventory_transfers_router
from repairtix.api.invitations import router as invitations_router
from repairtix.api.invoices import router as invoices_router
from repairtix.api.locations import router as locations_router
from repairtix.api.permissions import router as permissions_router
from repairtix.api.purchase_orders import router as purchase_orders_router
from repairtix.api.tickets import router as tickets_router
from repairtix.api.users import router as users_router

__all__ = [
    "auth_router",
    "companies_router",
    "locations_router",
    "users_router",
    "permissions_router",
    "invitations_router",
    "integrations_router",
    "customers_router",
    "assets_router",
    "tickets_router",
    "inventory_router",
    "categories_router",
    "subcategories_router",
    "brands_router",
    "models_router",
    "inventory_transfers_router",
    "purchase_orders_router",
    "invoices_router",
    "billing_router",
]
