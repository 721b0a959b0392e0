"""
Subscription billing API routes.

Companies pay per billable location. Admins manage autopay; superusers can
trigger a billing run by hand.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.api.integrations import get_http_transport
from repairtix.database import get_db
from repairtix.integrations.payment.square import SquareAdapter
from repairtix.middleware import TenantContext, require_admin, require_company_context, require_superuser
from repairtix.services import billing as billing_service

router = APIRouter(prefix="/api/billing", tags=["billing"])


class SubscriptionResponse(BaseModel):
    id: UUID
    status: str
    monthly_amount: float
    billing_day: int
    autopay_enabled: bool
    has_payment_method: bool
    calculated_amount: float
    location_count: int
    free_location_count: int
    created_at: datetime


class AutopayRequest(BaseModel):
    card_token: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: UUID
    amount: float
    status: str
    payment_reference: Optional[str]
    billing_period_start: datetime
    billing_period_end: datetime
    location_count: int
    failure_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class BillingRunRequest(BaseModel):
    billing_date: Optional[date] = None


class BillingRunResponse(BaseModel):
    processed: int


def get_payment_adapter(
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> SquareAdapter:
    """Platform Square account used to charge subscriptions."""
    return SquareAdapter.from_settings(transport=transport)


async def _subscription_response(db: AsyncSession, company_id: UUID) -> SubscriptionResponse:
    subscription = await billing_service.get_or_create_subscription(db, company_id)
    billing = await billing_service.calculate_monthly_amount(db, company_id)
    return SubscriptionResponse(
        id=subscription.id,
        status=subscription.status,
        monthly_amount=subscription.monthly_amount,
        billing_day=subscription.billing_day,
        autopay_enabled=subscription.autopay_enabled,
        has_payment_method=subscription.has_payment_method,
        calculated_amount=billing["amount"],
        location_count=billing["location_count"],
        free_location_count=billing["free_location_count"],
        created_at=subscription.created_at,
    )


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Current subscription with the amount the next run would charge."""
    return await _subscription_response(db, context.company_id)


@router.post(
    "/autopay",
    response_model=SubscriptionResponse,
    dependencies=[Depends(require_admin())],
)
async def enable_autopay(
    payload: AutopayRequest,
    context: TenantContext = Depends(require_company_context),
    adapter: SquareAdapter = Depends(get_payment_adapter),
    db: AsyncSession = Depends(get_db),
):
    await billing_service.enable_autopay(db, context.company_id, payload.card_token, adapter=adapter)
    return await _subscription_response(db, context.company_id)


@router.delete(
    "/autopay",
    response_model=SubscriptionResponse,
    dependencies=[Depends(require_admin())],
)
async def disable_autopay(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await billing_service.disable_autopay(db, context.company_id)
    return await _subscription_response(db, context.company_id)


@router.get(
    "/payments",
    response_model=List[PaymentResponse],
    dependencies=[Depends(require_admin())],
)
async def billing_history(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await billing_service.get_billing_history(db, context.company_id)


@router.post(
    "/process",
    response_model=BillingRunResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_superuser)],
)
async def process_billing(
    payload: BillingRunRequest,
    adapter: SquareAdapter = Depends(get_payment_adapter),
    db: AsyncSession = Depends(get_db),
):
    processed = await billing_service.process_monthly_billing(db, adapter=adapter, today=payload.billing_date)
    return BillingRunResponse(processed=processed)
