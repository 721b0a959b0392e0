"""
Third-party integration API routes (admin only).

Credentials are encrypted before they are stored and are only ever returned
masked. Reads never decrypt.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.database import get_db
from repairtix.errors import BadRequestError, NotFoundError
from repairtix.integrations.email.sendgrid import SendGridAdapter
from repairtix.integrations.payment.square import SquareAdapter
from repairtix.middleware import TenantContext, require_admin, require_company_context
from repairtix.services import credentials as credential_service
from repairtix.services.credentials import IntegrationType

router = APIRouter(
    prefix="/api/integrations",
    tags=["integrations"],
    dependencies=[Depends(require_admin())],
)


class IntegrationSave(BaseModel):
    provider: str = Field(..., min_length=1, max_length=50)
    enabled: bool = True
    credentials: Dict[str, Optional[str]] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)


class IntegrationResponse(BaseModel):
    type: str
    provider: str
    enabled: bool
    credentials: Dict[str, str]
    settings: Dict[str, Any] = Field(default_factory=dict)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    lastTested: Optional[str] = None
    lastError: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport used by outbound adapters; overridden in tests."""
    return None


def _masked(integration: dict[str, Any]) -> IntegrationResponse:
    return IntegrationResponse(
        **{**integration, "credentials": credential_service.mask_credentials(integration.get("credentials") or {})}
    )


@router.get("/{integration_type}", response_model=IntegrationResponse)
async def get_integration(
    integration_type: IntegrationType,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    integration = await credential_service.get_integration(db, context.company_id, integration_type)
    if integration is None:
        raise NotFoundError("Integration not found")
    return _masked(integration)


@router.post("/{integration_type}", response_model=IntegrationResponse)
async def save_integration(
    integration_type: IntegrationType,
    payload: IntegrationSave,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace an integration. E-mail integrations need an ``apiKey``."""
    if integration_type == IntegrationType.EMAIL and not payload.credentials.get("apiKey"):
        raise BadRequestError("API key is required for email integration")
    if integration_type == IntegrationType.EMAIL and payload.provider not in credential_service.EMAIL_PROVIDERS:
        raise BadRequestError(f"Unsupported email provider: {payload.provider}")
    if integration_type == IntegrationType.PAYMENT and payload.provider not in credential_service.PAYMENT_PROVIDERS:
        raise BadRequestError(f"Unsupported payment provider: {payload.provider}")

    integration = await credential_service.save_integration(
        db,
        context.company_id,
        integration_type,
        provider=payload.provider,
        credentials=payload.credentials,
        enabled=payload.enabled,
        settings=payload.settings,
    )
    return _masked(integration)


@router.post("/{integration_type}/test", response_model=MessageResponse)
async def test_integration(
    integration_type: IntegrationType,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
):
    """
    Check the stored credentials against the provider.

    The outcome is recorded on the integration (``lastTested``/``lastError``).

    Raises:
        NotFoundError: If the integration is not configured
        BadRequestError: If it is disabled, the provider cannot be tested, or
            the test fails
    """
    integration = await credential_service.get_integration(db, context.company_id, integration_type)
    if integration is None:
        raise NotFoundError(f"Integration {integration_type.value} not configured")
    if not integration.get("enabled", False):
        raise BadRequestError(f"Integration {integration_type.value} is disabled")

    provider = integration.get("provider")
    credentials = await credential_service.get_decrypted_credentials(db, context.company_id, integration_type)

    if integration_type == IntegrationType.EMAIL and provider == "sendgrid":
        result = await SendGridAdapter(transport=transport).test_connection(credentials)
    elif integration_type == IntegrationType.PAYMENT and provider == "square":
        adapter = SquareAdapter(
            access_token=credentials.get("accessToken"),
            location_id=credentials.get("locationId"),
            environment=(integration.get("settings") or {}).get("environment", "sandbox"),
            transport=transport,
        )
        result = await adapter.test_connection()
    else:
        raise BadRequestError(
            f"Testing not yet supported for {integration_type.value} integration with provider {provider}"
        )

    await credential_service.mark_integration_tested(
        db, context.company_id, integration_type, result.success, result.error
    )
    if not result.success:
        raise BadRequestError(result.error or "Connection test failed")
    return MessageResponse(message="Connection test successful")


@router.delete("/{integration_type}", response_model=MessageResponse)
async def delete_integration(
    integration_type: IntegrationType,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    if await credential_service.get_integration(db, context.company_id, integration_type) is None:
        raise NotFoundError(f"Integration {integration_type.value} not found")
    await credential_service.delete_integration(db, context.company_id, integration_type)
    return MessageResponse(message=f"Integration {integration_type.value} deleted successfully")
