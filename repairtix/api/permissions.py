"""
Role permission API routes.

Each company can tailor what its non-admin roles may do. Admin always holds
every permission.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission, UserRole
from repairtix.database import get_db
from repairtix.middleware import TenantContext, get_user_permissions, require_company_context, require_permission
from repairtix.services import permissions as permission_service

router = APIRouter(prefix="/api/permissions", tags=["permissions"])


class RolePermissionsUpdate(BaseModel):
    permissions: List[str]


class RolePermissionsResponse(BaseModel):
    role: str
    permissions: List[str]


@router.get("/available", response_model=List[str])
async def list_available_permissions(context: TenantContext = Depends(require_company_context)):
    return permission_service.get_all_available_permissions()


@router.get("/me", response_model=List[str])
async def my_permissions(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    if context.is_superuser:
        return permission_service.get_all_available_permissions()
    return await get_user_permissions(db, context.user, context.company_id)


@router.get(
    "/matrix",
    response_model=Dict[str, List[str]],
    dependencies=[Depends(require_permission(Permission.PERMISSIONS_VIEW))],
)
async def get_permissions_matrix(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await permission_service.get_permissions_matrix(db, context.company_id)


@router.put(
    "/roles/{role}",
    response_model=RolePermissionsResponse,
    dependencies=[Depends(require_permission(Permission.PERMISSIONS_MANAGE))],
)
async def update_role_permissions(
    role: UserRole,
    payload: RolePermissionsUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Replace the permissions of a role.

    Raises:
        BadRequestError: For the admin role or unknown permissions
    """
    permissions = await permission_service.update_role_permissions(
        db, role.value, payload.permissions, context.company_id
    )
    return RolePermissionsResponse(role=role.value, permissions=permissions)
