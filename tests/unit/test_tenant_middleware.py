"""
Unit tests for authentication, tenant, location and billing dependencies.
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.middleware.auth import get_current_active_user, get_current_user
from repairtix.middleware.billing import require_billing_good_standing, require_payment_method
from repairtix.middleware.location import optional_location_context, require_location_context
from repairtix.middleware.tenant import TenantContext, get_tenant_context, require_company_context
from repairtix.models import Company, Location, Subscription, SubscriptionStatus, User
from repairtix.security import create_access_token, create_refresh_token

pytestmark = pytest.mark.unit


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentUser:
    @pytest.mark.asyncio
    async def test_valid_token(self, test_db: AsyncSession, admin_user: User):
        """Test that valid token is accepted."""
        token = create_access_token(user_id=admin_user.id, company_id=admin_user.company_id, email=admin_user.email)

        user = await get_current_user(credentials=_bearer(token), db=test_db)

        assert user.id == admin_user.id

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_db: AsyncSession):
        """Test that missing credentials are rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, db=test_db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self, test_db: AsyncSession, admin_user: User):
        """Test that refresh token is rejected for API access."""
        token = create_refresh_token(user_id=admin_user.id, company_id=admin_user.company_id)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=_bearer(token), db=test_db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, test_db: AsyncSession, admin_user: User):
        """Test that expired token is rejected."""
        token = create_access_token(
            user_id=admin_user.id,
            company_id=admin_user.company_id,
            email=admin_user.email,
            expires_delta=timedelta(seconds=-5),
        )

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=_bearer(token), db=test_db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_other_company_rejected(
        self, test_db: AsyncSession, admin_user: User, other_company: Company
    ):
        """Test that a token for another company is rejected."""
        token = create_access_token(user_id=admin_user.id, company_id=other_company.id, email=admin_user.email)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=_bearer(token), db=test_db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user(self, inactive_user: User):
        """Test that inactive user is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_active_user(inactive_user)

        assert exc_info.value.status_code == 403
        assert "Inactive user" in exc_info.value.detail


class TestTenantContext:
    @pytest.mark.asyncio
    async def test_regular_user_scoped_to_company(self, test_db: AsyncSession, admin_user: User):
        """Test that regular user is scoped to their company."""
        context = await get_tenant_context(impersonate_company=None, current_user=admin_user, db=test_db)

        assert context.company_id == admin_user.company_id
        assert context.location_id == admin_user.current_location_id
        assert context.impersonating is False

    @pytest.mark.asyncio
    async def test_impersonation_header_ignored_for_regular_users(
        self, test_db: AsyncSession, admin_user: User, other_company: Company
    ):
        """Test that regular users cannot impersonate a company."""
        context = await get_tenant_context(
            impersonate_company=str(other_company.id), current_user=admin_user, db=test_db
        )

        assert context.company_id == admin_user.company_id

    @pytest.mark.asyncio
    async def test_superuser_without_company(self, test_db: AsyncSession, superuser: User):
        """Test superuser without a company."""
        context = await get_tenant_context(impersonate_company=None, current_user=superuser, db=test_db)

        assert context.company_id is None
        with pytest.raises(HTTPException) as exc_info:
            await require_company_context(context=context)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_superuser_impersonation(self, test_db: AsyncSession, superuser: User, test_company: Company):
        """Test that superuser can impersonate a company."""
        context = await get_tenant_context(
            impersonate_company=str(test_company.id), current_user=superuser, db=test_db
        )

        assert context.company_id == test_company.id
        assert context.impersonating is True

    @pytest.mark.asyncio
    async def test_superuser_impersonating_unknown_company(self, test_db: AsyncSession, superuser: User):
        """Test that impersonating an unknown company fails."""
        with pytest.raises(HTTPException) as exc_info:
            await get_tenant_context(impersonate_company="not-a-uuid", current_user=superuser, db=test_db)

        assert exc_info.value.status_code == 403
        assert "Invalid company ID" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_user_of_deleted_company(self, test_db: AsyncSession, admin_user: User, test_company: Company):
        """Test that a user of a deleted company is rejected."""
        test_company.soft_delete()
        await test_db.commit()

        with pytest.raises(HTTPException) as exc_info:
            await get_tenant_context(impersonate_company=None, current_user=admin_user, db=test_db)

        assert exc_info.value.status_code == 403


class TestLocationContext:
    @pytest.mark.asyncio
    async def test_assigned_location(self, test_db: AsyncSession, technician_user: User, test_location: Location):
        """Test that an assigned location grants access."""
        context = TenantContext(user=technician_user, company_id=technician_user.company_id)

        result = await require_location_context(context=context, db=test_db)

        assert result.location_id == test_location.id

    @pytest.mark.asyncio
    async def test_no_current_location(self, test_db: AsyncSession, technician_user: User):
        """Test that a missing current location is rejected."""
        technician_user.current_location_id = None
        await test_db.commit()
        context = TenantContext(user=technician_user, company_id=technician_user.company_id)

        with pytest.raises(HTTPException) as exc_info:
            await require_location_context(context=context, db=test_db)
        assert "current location" in exc_info.value.detail

        optional = await optional_location_context(context=context, db=test_db)
        assert optional.location_id is None

    @pytest.mark.asyncio
    async def test_unassigned_location_denied(
        self, test_db: AsyncSession, technician_user: User, second_location: Location
    ):
        """Test that an unassigned location is denied."""
        technician_user.current_location_id = second_location.id
        await test_db.commit()
        context = TenantContext(user=technician_user, company_id=technician_user.company_id)

        with pytest.raises(HTTPException) as exc_info:
            await require_location_context(context=context, db=test_db)

        assert exc_info.value.status_code == 403
        assert "does not have access" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_admin_reaches_every_location(
        self, test_db: AsyncSession, admin_user: User, second_location: Location
    ):
        """Test that admin can access every company location."""
        admin_user.current_location_id = second_location.id
        await test_db.commit()
        context = TenantContext(user=admin_user, company_id=admin_user.company_id)

        result = await require_location_context(context=context, db=test_db)

        assert result.location_id == second_location.id


class TestBillingDependencies:
    @pytest.mark.asyncio
    async def test_past_due_blocks(self, test_db: AsyncSession, admin_user: User, test_company: Company):
        """Test that a past due subscription is blocked."""
        test_db.add(Subscription(company_id=test_company.id, status=SubscriptionStatus.PAST_DUE.value))
        await test_db.commit()
        context = TenantContext(user=admin_user, company_id=test_company.id)

        with pytest.raises(HTTPException) as exc_info:
            await require_billing_good_standing(context=context, db=test_db)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_first_location_needs_no_payment_method(
        self, test_db: AsyncSession, admin_user: User, test_company: Company, test_location: Location
    ):
        """Test that the first location needs no payment method."""
        test_location.soft_delete()
        await test_db.commit()
        context = TenantContext(user=admin_user, company_id=test_company.id)

        assert await require_payment_method(context=context, db=test_db) is context

    @pytest.mark.asyncio
    async def test_additional_location_needs_card(
        self, test_db: AsyncSession, admin_user: User, test_company: Company, test_location: Location
    ):
        """Test that a second location requires a stored card."""
        context = TenantContext(user=admin_user, company_id=test_company.id)

        with pytest.raises(HTTPException) as exc_info:
            await require_payment_method(context=context, db=test_db)
        assert exc_info.value.status_code == 400
        assert "Payment method required" in exc_info.value.detail

        test_db.add(
            Subscription(
                company_id=test_company.id,
                status=SubscriptionStatus.ACTIVE.value,
                payment_customer_id="cust_1",
                payment_card_id="card_1",
                autopay_enabled=True,
            )
        )
        await test_db.commit()

        assert await require_payment_method(context=context, db=test_db) is context
