"""
Role and permission based authorization dependencies.

A user may hold several roles in a company (``user_roles``); a role check
passes if any of them matches and a permission check aggregates the
permissions of all of them. Superusers bypass every check.

Usage:
    @router.post("/tickets")
    async def create_ticket(
        context: TenantContext = Depends(require_permission(Permission.TICKETS_CREATE)),
    ):
        ...
"""

from typing import Union
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission, UserRole
from repairtix.database import get_db
from repairtix.errors import ForbiddenError
from repairtix.middleware.tenant import TenantContext, get_tenant_context
from repairtix.models import User, UserRoleAssignment
from repairtix.services import permissions as permission_service


async def get_user_roles(db: AsyncSession, user: User, company_id: UUID) -> list[str]:
    """All roles a user holds in a company, primary role first."""
    result = await db.execute(
        select(UserRoleAssignment.role).where(
            UserRoleAssignment.user_id == user.id,
            UserRoleAssignment.company_id == company_id,
        )
    )
    roles = [user.role]
    roles.extend(role for role in result.scalars().all() if role != user.role)
    return roles


async def get_user_permissions(db: AsyncSession, user: User, company_id: UUID) -> list[str]:
    """Sorted union of the permissions of all the user's roles."""
    roles = await get_user_roles(db, user, company_id)
    return sorted(await permission_service.get_permissions_for_roles(db, roles, company_id))


def _role_value(role: Union[str, UserRole]) -> str:
    return role.value if isinstance(role, UserRole) else role


def require_role(*roles: Union[str, UserRole]):
    """
    Dependency factory requiring one of the given roles.

    Args:
        *roles: Accepted roles

    Returns:
        FastAPI dependency resolving to the TenantContext

    Raises:
        ForbiddenError: If the user holds none of the roles
    """
    allowed = [_role_value(role) for role in roles]

    async def role_checker(
        context: TenantContext = Depends(get_tenant_context),
        db: AsyncSession = Depends(get_db),
    ) -> TenantContext:
        if context.is_superuser:
            return context

        if context.company_id is None:
            raise ForbiddenError("Company context required")

        user_roles = await get_user_roles(db, context.user, context.company_id)
        if not any(role in allowed for role in user_roles):
            raise ForbiddenError(f"Access denied. Required role: {' or '.join(allowed)}")

        return context

    return role_checker


def require_permission(permission: Union[str, Permission]):
    """
    Dependency factory requiring a permission.

    Raises:
        ForbiddenError: If none of the user's roles grants the permission
    """
    required = permission.value if isinstance(permission, Permission) else permission

    async def permission_checker(
        context: TenantContext = Depends(get_tenant_context),
        db: AsyncSession = Depends(get_db),
    ) -> TenantContext:
        if context.is_superuser:
            return context

        if context.company_id is None:
            raise ForbiddenError("Company context required")

        user_permissions = await get_user_permissions(db, context.user, context.company_id)
        if required not in user_permissions:
            raise ForbiddenError(f"Access denied. Required permission: {required}")

        return context

    return permission_checker


def require_admin():
    return require_role(UserRole.ADMIN)


def require_manager_or_admin():
    return require_role(UserRole.ADMIN, UserRole.MANAGER)


async def require_superuser(context: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    if not context.is_superuser:
        raise ForbiddenError("Superuser access required")
    return context
