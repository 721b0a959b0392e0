"""Billing standing dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.database import get_db
from repairtix.errors import BadRequestError, ForbiddenError
from repairtix.middleware.tenant import TenantContext, require_company_context
from repairtix.models import SubscriptionStatus
from repairtix.services import billing as billing_service
from repairtix.services import locations as location_service


async def require_billing_good_standing(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """Reject requests while the company's subscription is past due."""
    if context.is_superuser:
        return context

    subscription = await billing_service.get_subscription(db, context.company_id)
    if subscription and subscription.status == SubscriptionStatus.PAST_DUE.value:
        raise ForbiddenError(
            "Billing payment failed. Please update your payment method to continue using additional locations."
        )
    return context


async def require_payment_method(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """
    Allow creating a location only when it will be paid for.

    The first location is free; any further one needs a stored payment
    method and a subscription that is not past due.
    """
    if context.is_superuser:
        return context

    if await location_service.count_locations(db, context.company_id) == 0:
        return context

    subscription = await billing_service.get_subscription(db, context.company_id)
    if subscription is None or not subscription.has_payment_method:
        raise BadRequestError(
            "Payment method required. Please set up a payment method before adding additional locations."
        )
    if subscription.status == SubscriptionStatus.PAST_DUE.value:
        raise BadRequestError(
            "Billing payment failed. Please update your payment method before adding locations."
        )
    return context
