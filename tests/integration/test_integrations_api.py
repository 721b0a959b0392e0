"""
Integration tests for third-party integration settings.
"""

import httpx
import pytest
from httpx import AsyncClient

from repairtix.api.integrations import get_http_transport
from repairtix.main import app

pytestmark = pytest.mark.integration

SENDGRID_KEY = "SG.live-key-0123456789"


def _use_transport(handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    transport = httpx.MockTransport(record)
    app.dependency_overrides[get_http_transport] = lambda: transport
    return seen


async def _save_sendgrid(client: AsyncClient, headers: dict, **overrides):
    payload = {"provider": "sendgrid", "credentials": {"apiKey": SENDGRID_KEY}, "settings": {"fromEmail": "a@b.com"}}
    payload.update(overrides)
    return await client.post("/api/integrations/email", json=payload, headers=headers)


class TestIntegrationSettings:
    @pytest.mark.asyncio
    async def test_credentials_are_masked(self, client: AsyncClient, admin_headers: dict):
        """Test that stored credentials are masked in responses."""
        saved = await _save_sendgrid(client, admin_headers)

        assert saved.status_code == 200
        masked = saved.json()["credentials"]["apiKey"]
        assert masked[4:8] == "****"
        assert "live-key" not in masked

        fetched = await client.get("/api/integrations/email", headers=admin_headers)
        assert fetched.json()["credentials"]["apiKey"] != SENDGRID_KEY
        assert fetched.json()["settings"] == {"fromEmail": "a@b.com"}

    @pytest.mark.asyncio
    async def test_email_requires_api_key(self, client: AsyncClient, admin_headers: dict):
        """Test that an email integration requires an API key."""
        response = await _save_sendgrid(client, admin_headers, credentials={})

        assert response.status_code == 400
        assert response.json()["detail"] == "API key is required for email integration"

    @pytest.mark.asyncio
    async def test_unknown_provider(self, client: AsyncClient, admin_headers: dict):
        """Test that an unknown provider is rejected."""
        response = await _save_sendgrid(client, admin_headers, provider="pigeon")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_only(self, client: AsyncClient, technician_headers: dict):
        """Test that only admins can read integration settings."""
        response = await client.get("/api/integrations/email", headers=technician_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_integration(self, client: AsyncClient, admin_headers: dict):
        """Test that a missing integration is not found."""
        response = await client.get("/api/integrations/payment", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, admin_headers: dict):
        """Test that an integration can be deleted once."""
        await _save_sendgrid(client, admin_headers)

        deleted = await client.delete("/api/integrations/email", headers=admin_headers)
        again = await client.delete("/api/integrations/email", headers=admin_headers)

        assert deleted.status_code == 200
        assert again.status_code == 404


class TestConnectionChecks:
    @pytest.mark.asyncio
    async def test_sendgrid_success_uses_decrypted_key(self, client: AsyncClient, admin_headers: dict):
        """Test that the SendGrid check uses the decrypted key."""
        seen = _use_transport(lambda request: httpx.Response(200, json={"username": "shop"}))
        await _save_sendgrid(client, admin_headers)

        response = await client.post("/api/integrations/email/test", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Connection test successful"}
        assert seen[0].url.path == "/v3/user/profile"
        assert seen[0].headers["Authorization"] == f"Bearer {SENDGRID_KEY}"

        fetched = await client.get("/api/integrations/email", headers=admin_headers)
        assert fetched.json()["lastTested"] is not None
        assert fetched.json()["lastError"] is None

    @pytest.mark.asyncio
    async def test_sendgrid_bad_key_recorded(self, client: AsyncClient, admin_headers: dict):
        """Test that a bad SendGrid key is recorded."""
        _use_transport(lambda request: httpx.Response(401, json={"errors": [{"message": "unauthorized"}]}))
        await _save_sendgrid(client, admin_headers)

        response = await client.post("/api/integrations/email/test", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid API key. Please check your SendGrid API key."
        fetched = await client.get("/api/integrations/email", headers=admin_headers)
        assert fetched.json()["lastError"] == "Invalid API key. Please check your SendGrid API key."

    @pytest.mark.asyncio
    async def test_square_connection(self, client: AsyncClient, admin_headers: dict):
        """Test a Square connection check."""
        seen = _use_transport(lambda request: httpx.Response(200, json={"locations": [{"id": "L1"}]}))
        await client.post(
            "/api/integrations/payment",
            json={"provider": "square", "credentials": {"accessToken": "EAAA-token", "locationId": "L1"}},
            headers=admin_headers,
        )

        response = await client.post("/api/integrations/payment/test", headers=admin_headers)

        assert response.status_code == 200
        assert str(seen[0].url).startswith("https://connect.squareupsandbox.com/v2/locations")

    @pytest.mark.asyncio
    async def test_square_non_json_reply_fails_cleanly(self, client: AsyncClient, admin_headers: dict):
        """Test a 2xx HTML reply from Square is reported as a failed test"""
        _use_transport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        await client.post(
            "/api/integrations/payment",
            json={"provider": "square", "credentials": {"accessToken": "EAAA-token", "locationId": "L1"}},
            headers=admin_headers,
        )

        response = await client.post("/api/integrations/payment/test", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Square returned an invalid response"

    @pytest.mark.asyncio
    async def test_disabled_integration_not_tested(self, client: AsyncClient, admin_headers: dict):
        """Test that a disabled integration is not tested."""
        await _save_sendgrid(client, admin_headers, enabled=False)

        response = await client.post("/api/integrations/email/test", headers=admin_headers)

        assert response.status_code == 400
