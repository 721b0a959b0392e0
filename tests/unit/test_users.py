"""
Unit tests for user role and location management.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.models import Company, Location, User
from repairtix.services import users as user_service

pytestmark = pytest.mark.unit


class TestRoles:
    @pytest.mark.asyncio
    async def test_add_role_is_idempotent(self, test_db: AsyncSession, test_company: Company, technician_user: User):
        """Test that adding a held role twice keeps one assignment."""
        await user_service.add_user_role(test_db, technician_user.id, "frontdesk", test_company.id)
        assignments = await user_service.add_user_role(test_db, technician_user.id, "frontdesk", test_company.id)

        assert sorted(a.role for a in assignments) == ["frontdesk", "technician"]
        assert [a.role for a in assignments if a.is_primary] == ["technician"]

    @pytest.mark.asyncio
    async def test_set_primary_updates_user_role(
        self, test_db: AsyncSession, test_company: Company, technician_user: User
    ):
        """Test that setting the primary role updates the user."""
        await user_service.add_user_role(test_db, technician_user.id, "manager", test_company.id)

        assignments = await user_service.set_primary_role(test_db, technician_user.id, "manager", test_company.id)

        assert [a.role for a in assignments if a.is_primary] == ["manager"]
        user = await user_service.get_user(test_db, technician_user.id, test_company.id)
        assert user.role == "manager"

    @pytest.mark.asyncio
    async def test_removing_primary_promotes_remaining(
        self, test_db: AsyncSession, test_company: Company, technician_user: User
    ):
        """Test that removing the primary role promotes another."""
        await user_service.add_user_role(test_db, technician_user.id, "frontdesk", test_company.id)

        assignments = await user_service.remove_user_role(test_db, technician_user.id, "technician", test_company.id)

        assert [(a.role, a.is_primary) for a in assignments] == [("frontdesk", True)]
        assert (await user_service.get_user(test_db, technician_user.id, test_company.id)).role == "frontdesk"

    @pytest.mark.asyncio
    async def test_cannot_remove_last_role(self, test_db: AsyncSession, test_company: Company, technician_user: User):
        """Test that the last role of a user cannot be removed."""
        with pytest.raises(HTTPException) as exc_info:
            await user_service.remove_user_role(test_db, technician_user.id, "technician", test_company.id)

        assert exc_info.value.status_code == 400
        assert "last role" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_invalid_role(self, test_db: AsyncSession, test_company: Company, technician_user: User):
        """Test that a non-company role cannot be granted."""
        with pytest.raises(HTTPException) as exc_info:
            await user_service.add_user_role(test_db, technician_user.id, "superuser", test_company.id)

        assert exc_info.value.status_code == 400


class TestUsers:
    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that an admin cannot delete their own account."""
        with pytest.raises(HTTPException) as exc_info:
            await user_service.delete_user(test_db, admin_user.id, test_company.id, admin_user.id)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_soft_delete_deactivates(
        self, test_db: AsyncSession, test_company: Company, admin_user: User, technician_user: User
    ):
        """Test that soft delete deactivates the user."""
        await user_service.delete_user(test_db, technician_user.id, test_company.id, admin_user.id)

        assert technician_user.is_active is False
        assert [u.id for u in await user_service.list_users(test_db, test_company.id)] == [admin_user.id]

    @pytest.mark.asyncio
    async def test_technicians_list(
        self,
        test_db: AsyncSession,
        test_company: Company,
        admin_user: User,
        technician_user: User,
        frontdesk_user: User,
    ):
        """Test the technicians list."""
        technicians = await user_service.list_technicians(test_db, test_company.id)

        ids = {u.id for u in technicians}
        assert technician_user.id in ids
        assert admin_user.id in ids
        assert frontdesk_user.id not in ids


class TestLocations:
    @pytest.mark.asyncio
    async def test_set_current_location_requires_access(
        self, test_db: AsyncSession, test_company: Company, technician_user: User, second_location: Location
    ):
        """Test that switching location requires access."""
        with pytest.raises(HTTPException) as exc_info:
            await user_service.set_current_location(test_db, technician_user, second_location.id, test_company.id)
        assert exc_info.value.status_code == 403

        await user_service.assign_location(test_db, technician_user.id, second_location.id, test_company.id)
        user = await user_service.set_current_location(test_db, technician_user, second_location.id, test_company.id)

        assert user.current_location_id == second_location.id

    @pytest.mark.asyncio
    async def test_removing_current_location_clears_it(
        self, test_db: AsyncSession, test_company: Company, technician_user: User, test_location: Location
    ):
        """Test that removing the current location clears it."""
        await user_service.remove_location(test_db, technician_user.id, test_location.id, test_company.id)

        assert technician_user.current_location_id is None
        assert await user_service.get_user_locations(test_db, technician_user, test_company.id) == []

    @pytest.mark.asyncio
    async def test_admin_sees_all_locations(
        self, test_db: AsyncSession, test_company: Company, admin_user: User, second_location: Location
    ):
        """Test that admin sees all company locations."""
        locations = await user_service.get_user_locations(test_db, admin_user, test_company.id)

        assert len(locations) == 2
