"""
Per-company role permissions.

Each company gets a copy of the default matrix in ``role_permissions`` the
first time it is needed. Admin always holds every permission regardless of
what is stored.
"""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import (
    ALL_PERMISSIONS,
    COMPANY_ROLES,
    UserRole,
    default_permissions_for_role,
    is_valid_permission,
)
from repairtix.errors import BadRequestError, ValidationError
from repairtix.models import RolePermission

logger = logging.getLogger(__name__)


def get_all_available_permissions() -> list[str]:
    return sorted(ALL_PERMISSIONS)


async def _stored_permissions(db: AsyncSession, role: str, company_id: UUID) -> list[str]:
    result = await db.execute(
        select(RolePermission.permission).where(
            RolePermission.company_id == company_id,
            RolePermission.role == role,
        )
    )
    return list(result.scalars().all())


async def _company_initialized(db: AsyncSession, company_id: UUID) -> bool:
    result = await db.execute(
        select(RolePermission.id).where(RolePermission.company_id == company_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_permissions_for_role(db: AsyncSession, role: str, company_id: UUID) -> list[str]:
    """
    Permissions a role holds within a company.

    Seeds the company defaults on first use. A role with no stored rows falls
    back to the default matrix.
    """
    if role == UserRole.ADMIN.value:
        return list(ALL_PERMISSIONS)

    permissions = await _stored_permissions(db, role, company_id)
    if permissions:
        return permissions

    logger.warning(f"No stored permissions for role {role} in company {company_id}, using defaults")
    await initialize_company_permissions(db, company_id)
    permissions = await _stored_permissions(db, role, company_id)
    if permissions:
        return permissions

    return default_permissions_for_role(role)


async def get_permissions_for_roles(
    db: AsyncSession, roles: Iterable[str], company_id: UUID
) -> set[str]:
    """Union of the permissions of several roles."""
    aggregated: set[str] = set()
    for role in set(roles):
        aggregated.update(await get_permissions_for_role(db, role, company_id))
    return aggregated


async def get_permissions_matrix(db: AsyncSession, company_id: UUID) -> dict[str, list[str]]:
    """Role -> sorted permissions for every company role."""
    matrix: dict[str, list[str]] = {}
    for role in COMPANY_ROLES:
        matrix[role.value] = sorted(await get_permissions_for_role(db, role.value, company_id))
    return matrix


async def update_role_permissions(
    db: AsyncSession, role: str, permissions: list[str], company_id: UUID
) -> list[str]:
    """
    Replace the stored permissions of a role.

    Args:
        db: Database session
        role: Company role (admin cannot be edited)
        permissions: Full new permission list
        company_id: Company UUID

    Returns:
        Sorted permissions now held by the role

    Raises:
        BadRequestError: On unknown roles or when editing admin
        ValidationError: On unknown permissions
    """
    if role not in {r.value for r in COMPANY_ROLES}:
        raise BadRequestError(f"Invalid role: {role}")
    if role == UserRole.ADMIN.value:
        raise BadRequestError("Admin permissions cannot be modified")

    invalid = [p for p in permissions if not is_valid_permission(p)]
    if invalid:
        raise ValidationError(
            "Invalid permissions", errors={"permissions": f"Unknown: {', '.join(sorted(invalid))}"}
        )

    await db.execute(
        delete(RolePermission).where(
            RolePermission.company_id == company_id,
            RolePermission.role == role,
        )
    )
    unique_permissions = sorted(set(permissions))
    for permission in unique_permissions:
        db.add(RolePermission(company_id=company_id, role=role, permission=permission))
    await db.commit()

    logger.info(f"Updated permissions for role {role} in company {company_id}")
    return unique_permissions


async def sync_admin_permissions(db: AsyncSession, company_id: UUID, commit: bool = True) -> int:
    """Insert any admin permission missing from the table. Returns rows added."""
    existing = set(await _stored_permissions(db, UserRole.ADMIN.value, company_id))
    missing = [p for p in ALL_PERMISSIONS if p not in existing]
    for permission in missing:
        db.add(RolePermission(company_id=company_id, role=UserRole.ADMIN.value, permission=permission))
    if missing and commit:
        await db.commit()
    return len(missing)


async def initialize_company_permissions(db: AsyncSession, company_id: UUID) -> None:
    """
    Seed the default matrix for a company.

    Idempotent: if the company already has rows only the admin role is synced.
    """
    if await _company_initialized(db, company_id):
        await sync_admin_permissions(db, company_id)
        return

    for role in COMPANY_ROLES:
        if role == UserRole.ADMIN:
            continue
        for permission in default_permissions_for_role(role.value):
            db.add(RolePermission(company_id=company_id, role=role.value, permission=permission))

    await sync_admin_permissions(db, company_id, commit=False)
    await db.commit()
    logger.info(f"Initialized default permissions for company {company_id}")
