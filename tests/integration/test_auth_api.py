"""
Integration tests for registration, login, token refresh and invitations.
"""

import pytest
from httpx import AsyncClient

from repairtix.models import Company, User
from repairtix.security import create_refresh_token

pytestmark = pytest.mark.integration

PASSWORD = "password123"


def _registration(**overrides) -> dict:
    data = {
        "email": "owner@screenfix.com",
        "password": PASSWORD,
        "first_name": "Sam",
        "last_name": "Owner",
    }
    data.update(overrides)
    return data


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_new_company(self, client: AsyncClient):
        """Test registering a new company."""
        response = await client.post("/api/auth/register", json=_registration(company_name="Screen Fix"))

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "admin"
        assert data["user"]["company_id"] is not None

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["roles"] == ["admin"]
        assert "invoices.markPaid" in me.json()["permissions"]

    @pytest.mark.asyncio
    async def test_register_requires_company_or_invitation(self, client: AsyncClient):
        """Test that registration needs a company or an invitation."""
        response = await client.post("/api/auth/register", json=_registration())

        assert response.status_code == 400
        assert response.json()["detail"] == "Either companyName or invitationToken is required"

    @pytest.mark.asyncio
    async def test_register_existing_company_name(self, client: AsyncClient, test_company: Company):
        """Test that an existing company name is rejected."""
        response = await client.post("/api/auth/register", json=_registration(company_name="Fix It Fast"))

        assert response.status_code == 400
        assert response.json()["detail"] == "Company with this name already exists"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, admin_user: User):
        """Test that a registered email cannot register again."""
        response = await client.post(
            "/api/auth/register", json=_registration(email="ADMIN@fixitfast.com", company_name="Another Shop")
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_register_short_password(self, client: AsyncClient):
        """Test that a short password is rejected."""
        response = await client.post(
            "/api/auth/register", json=_registration(password="short", company_name="Screen Fix")
        )

        assert response.status_code == 422


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, admin_user: User):
        """Test successful login."""
        response = await client.post("/api/auth/login", json={"email": "admin@fixitfast.com", "password": PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == str(admin_user.id)
        assert data["user"]["last_login_at"] is not None

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, admin_user: User):
        """Test that a wrong password is rejected."""
        response = await client.post("/api/auth/login", json={"email": "admin@fixitfast.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_login_inactive_user(self, client: AsyncClient, inactive_user: User):
        """Test that inactive user cannot log in."""
        response = await client.post("/api/auth/login", json={"email": "gone@fixitfast.com", "password": PASSWORD})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient):
        """Test that /me requires a token."""
        response = await client.get("/api/auth/me")

        assert response.status_code == 401


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_issues_new_pair(self, client: AsyncClient, admin_user: User):
        """Test that refresh issues a new token pair."""
        refresh_token = create_refresh_token(user_id=admin_user.id, company_id=admin_user.company_id)

        response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "admin@fixitfast.com"

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, client: AsyncClient, admin_headers: dict):
        """Test that an access token is refused by the refresh endpoint."""
        access_token = admin_headers["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid refresh token"

    @pytest.mark.asyncio
    async def test_refresh_token_for_other_company_rejected(
        self, client: AsyncClient, admin_user: User, other_company: Company
    ):
        """Test a refresh token naming another company is refused"""
        refresh_token = create_refresh_token(user_id=admin_user.id, company_id=other_company.id)

        response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid refresh token"

    @pytest.mark.asyncio
    async def test_garbage_refresh_token_rejected(self, client: AsyncClient):
        """Test an undecodable refresh token gets the generic message"""
        response = await client.post("/api/auth/refresh", json={"refresh_token": "not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid refresh token"


class TestInvitationFlow:
    @pytest.mark.asyncio
    async def test_invite_and_join(self, client: AsyncClient, admin_headers: dict, test_company: Company):
        """Test inviting a user and joining with the token."""
        created = await client.post(
            "/api/invitations", json={"email": "newtech@example.com", "role": "technician"}, headers=admin_headers
        )
        assert created.status_code == 201
        token = created.json()["token"]

        validation = await client.get(f"/api/invitations/validate/{token}")
        assert validation.json() == {
            "valid": True,
            "error": None,
            "email": "newtech@example.com",
            "role": "technician",
            "company_id": str(test_company.id),
        }

        joined = await client.post(
            "/api/auth/register", json=_registration(email="newtech@example.com", invitation_token=token)
        )
        assert joined.status_code == 201
        assert joined.json()["user"]["role"] == "technician"
        assert joined.json()["user"]["company_id"] == str(test_company.id)

        again = await client.post(
            "/api/auth/register", json=_registration(email="newtech@example.com", invitation_token=token)
        )
        assert again.status_code == 400
        assert again.json()["detail"] == "Invitation has already been used"

    @pytest.mark.asyncio
    async def test_invitation_email_must_match(self, client: AsyncClient, admin_headers: dict):
        """Test that registration needs the invited email."""
        created = await client.post("/api/invitations", json={"email": "invited@example.com"}, headers=admin_headers)

        response = await client.post(
            "/api/auth/register",
            json=_registration(email="someone.else@example.com", invitation_token=created.json()["token"]),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Email does not match invitation"

    @pytest.mark.asyncio
    async def test_revoked_invitation_cannot_be_used(self, client: AsyncClient, admin_headers: dict):
        """Test that a revoked invitation cannot be used."""
        created = await client.post("/api/invitations", json={"email": "revoked@example.com"}, headers=admin_headers)
        invitation = created.json()

        revoked = await client.delete(f"/api/invitations/{invitation['id']}", headers=admin_headers)
        assert revoked.status_code == 204

        validation = await client.get(f"/api/invitations/validate/{invitation['token']}")
        assert validation.json()["valid"] is False

    @pytest.mark.asyncio
    async def test_only_admins_invite(self, client: AsyncClient, technician_headers: dict):
        """Test that only admins can invite."""
        response = await client.post(
            "/api/invitations", json={"email": "friend@example.com"}, headers=technician_headers
        )

        assert response.status_code == 403
