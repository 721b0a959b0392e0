"""
FastAPI dependencies for authentication, tenant scoping and authorization.
"""

from repairtix.middleware.auth import get_current_active_user, get_current_user
from repairtix.middleware.billing import require_billing_good_standing, require_payment_method
from repairtix.middleware.location import optional_location_context, require_location_context
from repairtix.middleware.rbac import (
    get_user_permissions,
    get_user_roles,
    require_admin,
    require_manager_or_admin,
    require_permission,
    require_role,
    require_superuser,
)
from repairtix.middleware.tenant import TenantContext, get_tenant_context, require_company_context

__all__ = [
    "get_current_user",
    "get_current_active_user",
    "TenantContext",
    "get_tenant_context",
    "require_company_context",
    "require_role",
    "require_permission",
    "require_admin",
    "require_manager_or_admin",
    "require_superuser",
    "get_user_roles",
    "get_user_permissions",
    "require_location_context",
    "optional_location_context",
    "require_billing_good_standing",
    "require_payment_method",
]
