"""
Unit tests for the per-company permission matrix and RBAC dependencies.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import ALL_PERMISSIONS, Permission, UserRole, default_permissions_for_role
from repairtix.middleware.rbac import (
    get_user_permissions,
    get_user_roles,
    require_admin,
    require_manager_or_admin,
    require_permission,
    require_superuser,
)
from repairtix.middleware.tenant import TenantContext
from repairtix.models import Company, User, UserRoleAssignment
from repairtix.services import permissions as permission_service

pytestmark = pytest.mark.unit


def _context(user: User) -> TenantContext:
    return TenantContext(user=user, company_id=user.company_id, location_id=user.current_location_id)


class TestPermissionMatrix:
    @pytest.mark.asyncio
    async def test_defaults_seeded_on_first_use(self, test_db: AsyncSession, test_company: Company):
        """Test that company defaults are seeded on first use."""
        permissions = await permission_service.get_permissions_for_role(test_db, "technician", test_company.id)

        assert Permission.TICKETS_CREATE.value in permissions
        assert Permission.INVOICES_MARK_PAID.value not in permissions

    @pytest.mark.asyncio
    async def test_admin_always_has_everything(self, test_db: AsyncSession, test_company: Company):
        """Test that admin always gets the full permission catalogue."""
        permissions = await permission_service.get_permissions_for_role(test_db, "admin", test_company.id)

        assert sorted(permissions) == sorted(ALL_PERMISSIONS)

    @pytest.mark.asyncio
    async def test_update_role_permissions(self, test_db: AsyncSession, test_company: Company):
        """Test replacing role permissions."""
        await permission_service.initialize_company_permissions(test_db, test_company.id)

        updated = await permission_service.update_role_permissions(
            test_db, "frontdesk", ["tickets.read", "invoices.read", "tickets.read"], test_company.id
        )

        assert updated == ["invoices.read", "tickets.read"]
        assert sorted(
            await permission_service.get_permissions_for_role(test_db, "frontdesk", test_company.id)
        ) == ["invoices.read", "tickets.read"]

    @pytest.mark.asyncio
    async def test_emptied_role_falls_back_to_defaults(self, test_db: AsyncSession, test_company: Company):
        """Test a role with no stored permissions gets the default matrix"""
        await permission_service.initialize_company_permissions(test_db, test_company.id)
        await permission_service.update_role_permissions(test_db, "frontdesk", [], test_company.id)

        permissions = await permission_service.get_permissions_for_role(test_db, "frontdesk", test_company.id)

        assert sorted(permissions) == sorted(default_permissions_for_role("frontdesk"))
        assert permissions

    @pytest.mark.asyncio
    async def test_admin_role_cannot_be_edited(self, test_db: AsyncSession, test_company: Company):
        """Test that admin permissions cannot be edited."""
        with pytest.raises(HTTPException) as exc_info:
            await permission_service.update_role_permissions(test_db, "admin", [], test_company.id)

        assert exc_info.value.status_code == 400
        assert "Admin permissions cannot be modified" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_unknown_permission_rejected(self, test_db: AsyncSession, test_company: Company):
        """Test that unknown permissions are rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await permission_service.update_role_permissions(
                test_db, "manager", ["tickets.read", "rockets.launch"], test_company.id
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["message"] == "Invalid permissions"
        assert "rockets.launch" in exc_info.value.errors["permissions"]


class TestMultipleRoles:
    @pytest.mark.asyncio
    async def test_permissions_aggregate_across_roles(
        self, test_db: AsyncSession, test_company: Company, frontdesk_user: User
    ):
        """Test that permissions aggregate across roles."""
        assert Permission.TICKETS_UPDATE_STATUS.value not in await get_user_permissions(
            test_db, frontdesk_user, test_company.id
        )

        test_db.add(UserRoleAssignment(user_id=frontdesk_user.id, company_id=test_company.id, role="technician"))
        await test_db.commit()

        roles = await get_user_roles(test_db, frontdesk_user, test_company.id)
        permissions = await get_user_permissions(test_db, frontdesk_user, test_company.id)

        assert roles == ["frontdesk", "technician"]
        assert Permission.TICKETS_UPDATE_STATUS.value in permissions
        assert Permission.CUSTOMERS_CREATE.value in permissions


class TestRequirePermission:
    @pytest.mark.asyncio
    async def test_user_with_permission_passes(self, test_db: AsyncSession, technician_user: User):
        """Test that user with required permission passes."""
        checker = require_permission(Permission.TICKETS_CREATE)
        context = _context(technician_user)

        assert await checker(context=context, db=test_db) is context

    @pytest.mark.asyncio
    async def test_user_without_permission_raises(self, test_db: AsyncSession, technician_user: User):
        """Test that user without required permission raises HTTPException."""
        checker = require_permission(Permission.INVOICES_MARK_PAID)

        with pytest.raises(HTTPException) as exc_info:
            await checker(context=_context(technician_user), db=test_db)

        assert exc_info.value.status_code == 403
        assert "invoices.markPaid" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_superuser_bypasses(self, test_db: AsyncSession, superuser: User):
        """Test that superuser bypasses permission checks."""
        checker = require_permission("permissions.manage")
        context = TenantContext(user=superuser, company_id=None)

        assert await checker(context=context, db=test_db) is context


class TestRequireRole:
    @pytest.mark.asyncio
    async def test_admin_passes_admin_check(self, test_db: AsyncSession, admin_user: User):
        """Test that admin user passes admin check."""
        context = _context(admin_user)

        assert await require_admin()(context=context, db=test_db) is context

    @pytest.mark.asyncio
    async def test_technician_fails_manager_check(self, test_db: AsyncSession, technician_user: User):
        """Test that technician fails the manager check."""
        with pytest.raises(HTTPException) as exc_info:
            await require_manager_or_admin()(context=_context(technician_user), db=test_db)

        assert exc_info.value.status_code == 403
        assert "admin or manager" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_secondary_role_counts(self, test_db: AsyncSession, test_company: Company, technician_user: User):
        """Test that a secondary role counts."""
        test_db.add(
            UserRoleAssignment(user_id=technician_user.id, company_id=test_company.id, role=UserRole.MANAGER.value)
        )
        await test_db.commit()

        context = _context(technician_user)
        assert await require_manager_or_admin()(context=context, db=test_db) is context

    @pytest.mark.asyncio
    async def test_require_superuser(self, admin_user: User, superuser: User):
        """Test the superuser requirement."""
        with pytest.raises(HTTPException) as exc_info:
            await require_superuser(context=_context(admin_user))
        assert exc_info.value.status_code == 403

        context = TenantContext(user=superuser, company_id=None)
        assert await require_superuser(context=context) is context
