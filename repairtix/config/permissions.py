"""
Permission catalogue and default role matrix.

Permissions are dotted strings (``<resource>.<action>``). Every company starts
from the defaults below; admins may override them per company through the
``role_permissions`` table.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    FRONTDESK = "frontdesk"
    SUPERUSER = "superuser"


# Roles whose permissions are managed per company (superuser is platform-level)
COMPANY_ROLES: tuple[UserRole, ...] = (
    UserRole.ADMIN,
    UserRole.MANAGER,
    UserRole.TECHNICIAN,
    UserRole.FRONTDESK,
)


class Permission(str, Enum):
    CUSTOMERS_READ = "customers.read"
    CUSTOMERS_CREATE = "customers.create"
    CUSTOMERS_UPDATE = "customers.update"
    CUSTOMERS_DELETE = "customers.delete"

    TICKETS_READ = "tickets.read"
    TICKETS_CREATE = "tickets.create"
    TICKETS_UPDATE = "tickets.update"
    TICKETS_ASSIGN = "tickets.assign"
    TICKETS_UPDATE_STATUS = "tickets.updateStatus"
    TICKETS_ADD_NOTES = "tickets.addNotes"
    TICKETS_DELETE = "tickets.delete"

    INVOICES_READ = "invoices.read"
    INVOICES_CREATE = "invoices.create"
    INVOICES_UPDATE = "invoices.update"
    INVOICES_DELETE = "invoices.delete"
    INVOICES_MANAGE_ITEMS = "invoices.manageItems"
    INVOICES_MARK_PAID = "invoices.markPaid"
    INVOICES_MODIFY_PRICES = "invoices.modifyPrices"
    INVOICES_MODIFY_DISCOUNTS = "invoices.modifyDiscounts"

    INVENTORY_READ = "inventory.read"
    INVENTORY_CREATE = "inventory.create"
    INVENTORY_UPDATE = "inventory.update"
    INVENTORY_DELETE = "inventory.delete"

    PURCHASE_ORDERS_READ = "purchaseOrders.read"
    PURCHASE_ORDERS_CREATE = "purchaseOrders.create"
    PURCHASE_ORDERS_UPDATE = "purchaseOrders.update"
    PURCHASE_ORDERS_RECEIVE = "purchaseOrders.receive"
    PURCHASE_ORDERS_CANCEL = "purchaseOrders.cancel"
    PURCHASE_ORDERS_DELETE = "purchaseOrders.delete"

    INVITATIONS_READ = "invitations.read"
    INVITATIONS_CREATE = "invitations.create"
    INVITATIONS_DELETE = "invitations.delete"

    SETTINGS_ACCESS = "settings.access"

    PERMISSIONS_VIEW = "permissions.view"
    PERMISSIONS_MANAGE = "permissions.manage"


ALL_PERMISSIONS: list[str] = [p.value for p in Permission]


ROLE_PERMISSIONS: dict[str, list[str]] = {
    UserRole.ADMIN.value: list(ALL_PERMISSIONS),
    UserRole.MANAGER.value: [
        Permission.CUSTOMERS_READ.value,
        Permission.CUSTOMERS_CREATE.value,
        Permission.CUSTOMERS_UPDATE.value,
        Permission.TICKETS_READ.value,
        Permission.TICKETS_ASSIGN.value,
        Permission.TICKETS_UPDATE_STATUS.value,
        Permission.INVOICES_READ.value,
        Permission.INVOICES_CREATE.value,
        Permission.INVOICES_UPDATE.value,
        Permission.INVOICES_MANAGE_ITEMS.value,
        Permission.INVOICES_MARK_PAID.value,
        Permission.INVOICES_MODIFY_PRICES.value,
        Permission.INVOICES_MODIFY_DISCOUNTS.value,
        Permission.INVENTORY_READ.value,
        Permission.INVENTORY_CREATE.value,
        Permission.INVENTORY_UPDATE.value,
        Permission.INVENTORY_DELETE.value,
        Permission.PURCHASE_ORDERS_READ.value,
        Permission.PURCHASE_ORDERS_CREATE.value,
        Permission.PURCHASE_ORDERS_UPDATE.value,
        Permission.PURCHASE_ORDERS_RECEIVE.value,
        Permission.PURCHASE_ORDERS_CANCEL.value,
        Permission.SETTINGS_ACCESS.value,
    ],
    UserRole.TECHNICIAN.value: [
        Permission.CUSTOMERS_READ.value,
        Permission.TICKETS_READ.value,
        Permission.TICKETS_CREATE.value,
        Permission.TICKETS_UPDATE.value,
        Permission.TICKETS_UPDATE_STATUS.value,
        Permission.TICKETS_ADD_NOTES.value,
        Permission.INVOICES_READ.value,
        Permission.INVENTORY_READ.value,
        Permission.PURCHASE_ORDERS_READ.value,
        Permission.SETTINGS_ACCESS.value,
    ],
    UserRole.FRONTDESK.value: [
        Permission.CUSTOMERS_READ.value,
        Permission.CUSTOMERS_CREATE.value,
        Permission.CUSTOMERS_UPDATE.value,
        Permission.TICKETS_READ.value,
        Permission.TICKETS_CREATE.value,
        Permission.INVENTORY_READ.value,
        Permission.PURCHASE_ORDERS_READ.value,
        Permission.SETTINGS_ACCESS.value,
    ],
}


def default_permissions_for_role(role: str) -> list[str]:
    """Static defaults for a role (empty for unknown roles)."""
    return list(ROLE_PERMISSIONS.get(role, []))


def is_valid_permission(permission: str) -> bool:
    return permission in ALL_PERMISSIONS
