"""
RepairTix database models.

Importing this package registers every table on ``Base.metadata``.
"""

from repairtix.models.base import Base
from repairtix.models.company import Company
from repairtix.models.location import Location, UserLocation
from repairtix.models.user import User, UserRoleAssignment
from repairtix.models.role_permission import RolePermission
from repairtix.models.invitation import Invitation
from repairtix.models.customer import Asset, Customer
from repairtix.models.ticket import Ticket, TicketPriority, TicketStatus
from repairtix.models.inventory import (
    InventoryBrand,
    InventoryCategory,
    InventoryItem,
    InventoryLocationQuantity,
    InventoryModel,
    InventorySubcategory,
    InventoryTransfer,
    TransferStatus,
)
from repairtix.models.purchase_order import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from repairtix.models.invoice import Invoice, InvoiceItem, InvoiceItemType, InvoiceStatus
from repairtix.models.subscription import (
    PaymentStatus,
    Subscription,
    SubscriptionPayment,
    SubscriptionStatus,
)

__all__ = [
    "Base",
    "Company",
    "Location",
    "UserLocation",
    "User",
    "UserRoleAssignment",
    "RolePermission",
    "Invitation",
    "Customer",
    "Asset",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "InventoryCategory",
    "InventorySubcategory",
    "InventoryBrand",
    "InventoryModel",
    "InventoryItem",
    "InventoryLocationQuantity",
    "InventoryTransfer",
    "TransferStatus",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderStatus",
    "Invoice",
    "InvoiceItem",
    "InvoiceItemType",
    "InvoiceStatus",
    "Subscription",
    "SubscriptionPayment",
    "SubscriptionStatus",
    "PaymentStatus",
]
