"""
Unit tests for integration credential storage.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.models import Company
from repairtix.services import credentials as credential_service
from repairtix.services.credentials import IntegrationType, mask_credentials, mask_value

pytestmark = pytest.mark.unit


class TestMasking:
    def test_long_value(self):
        """Test masking a long value."""
        assert mask_value("SG.abcdefghijkl") == "SG.a*******ijkl"

    def test_short_value(self):
        """Test masking a short value."""
        assert mask_value("secret") == "****"

    def test_empty_value(self):
        """Test masking an empty value."""
        assert mask_value("") == ""

    def test_mask_credentials(self):
        """Test masking of every credential value."""
        assert mask_credentials({"apiKey": "1234567890", "pin": "42"}) == {"apiKey": "1234****7890", "pin": "****"}


class TestIntegrationStorage:
    @pytest.mark.asyncio
    async def test_credentials_encrypted_at_rest(self, test_db: AsyncSession, test_company: Company):
        """Test that credentials are encrypted at rest."""
        stored = await credential_service.save_integration(
            test_db,
            test_company.id,
            IntegrationType.EMAIL,
            "sendgrid",
            {"apiKey": "SG.super-secret-key", "fromName": None},
            settings={"fromEmail": "shop@example.com"},
        )

        assert stored["provider"] == "sendgrid"
        assert "fromName" not in stored["credentials"]
        assert stored["credentials"]["apiKey"] != "SG.super-secret-key"
        assert len(stored["credentials"]["apiKey"].split(":")) == 3

        decrypted = await credential_service.get_decrypted_credentials(test_db, test_company.id, IntegrationType.EMAIL)
        assert decrypted == {"apiKey": "SG.super-secret-key"}

    @pytest.mark.asyncio
    async def test_resave_keeps_created_at(self, test_db: AsyncSession, test_company: Company):
        """Test that resaving keeps the creation time."""
        first = await credential_service.save_integration(
            test_db, test_company.id, IntegrationType.PAYMENT, "square", {"accessToken": "one"}
        )
        second = await credential_service.save_integration(
            test_db, test_company.id, IntegrationType.PAYMENT, "square", {"accessToken": "two"}
        )

        assert second["createdAt"] == first["createdAt"]

    @pytest.mark.asyncio
    async def test_disabled_integration(self, test_db: AsyncSession, test_company: Company):
        """Test that a disabled integration cannot be decrypted."""
        await credential_service.save_integration(
            test_db, test_company.id, IntegrationType.EMAIL, "sendgrid", {"apiKey": "key"}, enabled=False
        )

        with pytest.raises(HTTPException) as exc_info:
            await credential_service.get_decrypted_credentials(test_db, test_company.id, IntegrationType.EMAIL)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_integration(self, test_db: AsyncSession, test_company: Company):
        """Test that a missing integration is not found."""
        with pytest.raises(HTTPException) as exc_info:
            await credential_service.get_decrypted_credentials(test_db, test_company.id, IntegrationType.SMS)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_metadata_update_leaves_credentials(self, test_db: AsyncSession, test_company: Company):
        """Test that metadata updates keep stored credentials."""
        stored = await credential_service.save_integration(
            test_db, test_company.id, IntegrationType.EMAIL, "sendgrid", {"apiKey": "key-value-123"}
        )

        updated = await credential_service.mark_integration_tested(
            test_db, test_company.id, IntegrationType.EMAIL, success=False, error="Unauthorized"
        )

        assert updated["lastError"] == "Unauthorized"
        assert updated["credentials"] == stored["credentials"]

    @pytest.mark.asyncio
    async def test_delete_integration(self, test_db: AsyncSession, test_company: Company):
        """Test that deleting an integration removes it."""
        await credential_service.save_integration(
            test_db, test_company.id, IntegrationType.EMAIL, "sendgrid", {"apiKey": "key"}
        )

        await credential_service.delete_integration(test_db, test_company.id, IntegrationType.EMAIL)

        assert await credential_service.get_integration(test_db, test_company.id, IntegrationType.EMAIL) is None
