"""
Unit tests for the invitation service.
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.models import Company, User
from repairtix.models.base import utc_now
from repairtix.services import invitations as invitation_service

pytestmark = pytest.mark.unit


class TestCreateInvitation:
    @pytest.mark.asyncio
    async def test_defaults(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test invitation defaults."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "  New.Tech@Example.com ", admin_user.id
        )

        assert invitation.email == "new.tech@example.com"
        assert invitation.role == "technician"
        assert len(invitation.token) >= 43
        remaining = invitation.expires_at.replace(tzinfo=None) - utc_now().replace(tzinfo=None)
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    @pytest.mark.asyncio
    async def test_duplicate_active_invitation(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that a second active invitation for an email is rejected."""
        await invitation_service.create_invitation(test_db, test_company.id, "dup@example.com", admin_user.id)

        with pytest.raises(HTTPException) as exc_info:
            await invitation_service.create_invitation(test_db, test_company.id, "DUP@example.com", admin_user.id)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_same_email_other_company_allowed(
        self, test_db: AsyncSession, test_company: Company, other_company: Company, admin_user: User, other_admin: User
    ):
        """Test that the same email may be invited by another company."""
        await invitation_service.create_invitation(test_db, test_company.id, "both@example.com", admin_user.id)
        invitation = await invitation_service.create_invitation(
            test_db, other_company.id, "both@example.com", other_admin.id
        )

        assert invitation.company_id == other_company.id

    @pytest.mark.asyncio
    async def test_superuser_role_not_invitable(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that the superuser role cannot be invited."""
        with pytest.raises(HTTPException) as exc_info:
            await invitation_service.create_invitation(
                test_db, test_company.id, "x@example.com", admin_user.id, role="superuser"
            )

        assert exc_info.value.status_code == 400


class TestTokenValidation:
    @pytest.mark.asyncio
    async def test_valid_token(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that valid token is accepted."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "ok@example.com", admin_user.id
        )

        result = await invitation_service.is_token_valid(test_db, invitation.token, "OK@example.com")

        assert result.valid is True
        assert result.invitation.id == invitation.id

    @pytest.mark.asyncio
    async def test_unknown_token(self, test_db: AsyncSession):
        """Test that an unknown token is invalid."""
        result = await invitation_service.is_token_valid(test_db, "nope")

        assert result.valid is False
        assert result.error == "Invalid invitation token"

    @pytest.mark.asyncio
    async def test_email_mismatch(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that a token used with another email is invalid."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "ok@example.com", admin_user.id
        )

        result = await invitation_service.is_token_valid(test_db, invitation.token, "other@example.com")

        assert result.valid is False
        assert result.error == "Email does not match invitation"

    @pytest.mark.asyncio
    async def test_expired(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that an expired invitation is invalid."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "late@example.com", admin_user.id
        )
        invitation.expires_at = utc_now() - timedelta(minutes=1)
        await test_db.commit()

        result = await invitation_service.is_token_valid(test_db, invitation.token)

        assert result.valid is False
        assert result.error == "Invitation has expired"

    @pytest.mark.asyncio
    async def test_used_token(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that a used token is invalid."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "once@example.com", admin_user.id
        )

        assert await invitation_service.mark_as_used(test_db, invitation.token) is True
        assert await invitation_service.mark_as_used(test_db, invitation.token) is False

        result = await invitation_service.is_token_valid(test_db, invitation.token)
        assert result.error == "Invitation has already been used"

    @pytest.mark.asyncio
    async def test_revoked_token_is_invalid(self, test_db: AsyncSession, test_company: Company, admin_user: User):
        """Test that a revoked token is invalid."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "revoked@example.com", admin_user.id
        )

        await invitation_service.revoke_invitation(test_db, invitation.id, test_company.id)

        result = await invitation_service.is_token_valid(test_db, invitation.token)
        assert result.valid is False
        assert await invitation_service.list_invitations(test_db, test_company.id) == []

    @pytest.mark.asyncio
    async def test_revoke_other_company_invitation(
        self, test_db: AsyncSession, test_company: Company, other_company: Company, admin_user: User
    ):
        """Test that another company's invitation cannot be revoked."""
        invitation = await invitation_service.create_invitation(
            test_db, test_company.id, "mine@example.com", admin_user.id
        )

        with pytest.raises(HTTPException) as exc_info:
            await invitation_service.revoke_invitation(test_db, invitation.id, other_company.id)

        assert exc_info.value.status_code == 404
