"""
Integration credentials.

Third-party integration configs live under
``company.settings["integrations"][<type>]`` with every credential value
encrypted. Decrypted credentials are only produced on demand and are never
logged.
"""

import copy
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, NotFoundError
from repairtix.services.companies import get_company
from repairtix.utils.encryption import decrypt_credentials, encrypt_credentials

logger = logging.getLogger(__name__)


class IntegrationType(str, Enum):
    EMAIL = "email"
    PAYMENT = "payment"
    SMS = "sms"


EMAIL_PROVIDERS = ("sendgrid", "mailgun", "resend", "aws_ses", "brevo", "custom_smtp")
PAYMENT_PROVIDERS = ("square", "stripe", "paypal")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _type_value(integration_type) -> str:
    return integration_type.value if isinstance(integration_type, IntegrationType) else integration_type


async def _integrations(db: AsyncSession, company_id: UUID):
    company = await get_company(db, company_id)
    settings = copy.deepcopy(company.settings or {})
    integrations = settings.setdefault("integrations", {})
    return company, settings, integrations


async def _store(db: AsyncSession, company, settings: dict) -> None:
    # Reassign so SQLAlchemy sees the JSON column change
    company.settings = settings
    await db.commit()


async def get_integration(
    db: AsyncSession, company_id: UUID, integration_type: IntegrationType
) -> Optional[dict[str, Any]]:
    """Stored config with credentials still encrypted, or None."""
    _, _, integrations = await _integrations(db, company_id)
    return integrations.get(_type_value(integration_type))


async def save_integration(
    db: AsyncSession,
    company_id: UUID,
    integration_type: IntegrationType,
    provider: str,
    credentials: dict[str, Optional[str]],
    enabled: bool = True,
    settings: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Encrypt and store an integration, keeping the original ``createdAt``."""
    type_value = _type_value(integration_type)
    company, company_settings, integrations = await _integrations(db, company_id)

    now = _now_iso()
    existing = integrations.get(type_value) or {}
    integrations[type_value] = {
        "type": type_value,
        "provider": provider,
        "enabled": enabled,
        "credentials": encrypt_credentials(credentials),
        "settings": settings or {},
        "createdAt": existing.get("createdAt", now),
        "updatedAt": now,
    }
    await _store(db, company, company_settings)

    logger.info(f"Saved {type_value} integration ({provider}) for company {company_id}")
    return integrations[type_value]


async def get_decrypted_credentials(
    db: AsyncSession, company_id: UUID, integration_type: IntegrationType
) -> dict[str, str]:
    """
    Decrypted credentials for making an API call.

    Raises:
        NotFoundError: If the integration is not configured
        BadRequestError: If the integration is disabled
    """
    type_value = _type_value(integration_type)
    integration = await get_integration(db, company_id, type_value)
    if integration is None:
        raise NotFoundError(f"Integration {type_value} not found")
    if not integration.get("enabled", False):
        raise BadRequestError(f"Integration {type_value} is disabled")
    return decrypt_credentials(integration.get("credentials") or {})


async def delete_integration(db: AsyncSession, company_id: UUID, integration_type: IntegrationType) -> None:
    type_value = _type_value(integration_type)
    company, company_settings, integrations = await _integrations(db, company_id)
    integrations.pop(type_value, None)
    await _store(db, company, company_settings)
    logger.info(f"Deleted {type_value} integration for company {company_id}")


async def update_integration_metadata(
    db: AsyncSession,
    company_id: UUID,
    integration_type: IntegrationType,
    metadata: dict[str, Any],
) -> dict[str, Any]:
    """Merge metadata into an integration. Credentials are never touched."""
    type_value = _type_value(integration_type)
    company, company_settings, integrations = await _integrations(db, company_id)

    integration = integrations.get(type_value)
    if integration is None:
        raise NotFoundError(f"Integration {type_value} not found")

    credentials = integration.get("credentials", {})
    integration.update(metadata)
    integration["credentials"] = credentials
    integration["updatedAt"] = _now_iso()

    await _store(db, company, company_settings)
    return integration


async def mark_integration_tested(
    db: AsyncSession,
    company_id: UUID,
    integration_type: IntegrationType,
    success: bool,
    error: Optional[str] = None,
) -> dict[str, Any]:
    return await update_integration_metadata(
        db,
        company_id,
        integration_type,
        {"lastTested": _now_iso(), "lastError": None if success else error},
    )


def mask_value(value: str) -> str:
    """Show the first and last four characters of long secrets only."""
    if not value:
        return ""
    if len(value) > 8:
        return f"{value[:4]}{'*' * max(4, len(value) - 8)}{value[-4:]}"
    return "****"


def mask_credentials(credentials: dict[str, str]) -> dict[str, str]:
    return {key: mask_value(value) for key, value in credentials.items()}
