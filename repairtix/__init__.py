"""
RepairTix - multi-tenant backend for electronics repair shops.

Companies (tenants) manage locations, staff, customers and their devices,
repair tickets, inventory, purchase orders, invoices and a per-location
monthly subscription.
"""

__version__ = "1.0.0"
