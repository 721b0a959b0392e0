"""
Subscription billing.

Companies pay a flat monthly fee per billable location (every non-free,
non-deleted location). The scheduler calls :func:`process_monthly_billing`
daily; it only acts on the configured billing day and records at most one
payment per subscription per billing period.
"""

import calendar
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.settings import get_settings
from repairtix.errors import BadRequestError, NotFoundError, PaymentError
from repairtix.integrations.payment.square import SquareAdapter
from repairtix.models import (
    Company,
    Location,
    PaymentStatus,
    Subscription,
    SubscriptionPayment,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)


async def calculate_monthly_amount(db: AsyncSession, company_id: UUID) -> dict:
    """
    Monthly fee for a company.

    Returns:
        ``{"amount": Decimal, "location_count": billable, "free_location_count": free}``
    """
    settings = get_settings()
    result = await db.execute(
        select(
            func.coalesce(func.sum(case((Location.is_free.is_(False), 1), else_=0)), 0),
            func.coalesce(func.sum(case((Location.is_free.is_(True), 1), else_=0)), 0),
        ).where(Location.company_id == company_id, Location.deleted_at.is_(None))
    )
    billable, free = result.one()
    billable = int(billable)
    amount = Decimal(str(settings.BILLING_AMOUNT_PER_LOCATION)) * billable
    return {
        "amount": amount.quantize(Decimal("0.01")),
        "location_count": billable,
        "free_location_count": int(free),
    }


async def get_subscription(db: AsyncSession, company_id: UUID) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription).where(
            Subscription.company_id == company_id, Subscription.deleted_at.is_(None)
        )
    )
    return result.scalar_one_or_none()


async def get_or_create_subscription(db: AsyncSession, company_id: UUID) -> Subscription:
    subscription = await get_subscription(db, company_id)
    if subscription is not None:
        return subscription

    billing = await calculate_monthly_amount(db, company_id)
    subscription = Subscription(
        company_id=company_id,
        status=SubscriptionStatus.PENDING.value,
        monthly_amount=billing["amount"],
        billing_day=get_settings().BILLING_DAY_OF_MONTH,
        autopay_enabled=False,
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)
    return subscription


async def recalculate_subscription_amount(db: AsyncSession, company_id: UUID) -> Optional[Subscription]:
    """Refresh the stored monthly amount after locations change."""
    subscription = await get_subscription(db, company_id)
    if subscription is None:
        return None

    billing = await calculate_monthly_amount(db, company_id)
    if Decimal(subscription.monthly_amount) != billing["amount"]:
        logger.info(
            f"Subscription amount for company {company_id} changed "
            f"from {subscription.monthly_amount} to {billing['amount']}"
        )
        subscription.monthly_amount = billing["amount"]
        await db.commit()
    return subscription


async def enable_autopay(
    db: AsyncSession,
    company_id: UUID,
    card_token: str,
    adapter: Optional[SquareAdapter] = None,
) -> Subscription:
    """
    Store a card for the company and turn on automatic monthly charges.

    Raises:
        NotFoundError: If the company does not exist
        BadRequestError: If the payment processor rejects the customer or card
    """
    adapter = adapter or SquareAdapter.from_settings()

    company = (
        await db.execute(select(Company).where(Company.id == company_id, Company.deleted_at.is_(None)))
    ).scalar_one_or_none()
    if company is None:
        raise NotFoundError("Company not found")

    subscription = await get_or_create_subscription(db, company_id)

    try:
        if not subscription.payment_customer_id:
            subscription.payment_customer_id = await adapter.create_customer(company.name, company.email)
        subscription.payment_card_id = await adapter.save_card(subscription.payment_customer_id, card_token)
    except PaymentError as e:
        await db.rollback()
        logger.warning(f"Failed to store payment method for company {company_id}: {e}")
        raise BadRequestError(f"Failed to save payment method: {e}")

    billing = await calculate_monthly_amount(db, company_id)
    subscription.monthly_amount = billing["amount"]
    subscription.autopay_enabled = True
    subscription.status = SubscriptionStatus.ACTIVE.value
    await db.commit()
    await db.refresh(subscription)

    logger.info(f"Autopay enabled for company {company_id}")
    return subscription


async def disable_autopay(db: AsyncSession, company_id: UUID) -> Subscription:
    subscription = await get_subscription(db, company_id)
    if subscription is None:
        raise NotFoundError("Subscription not found")

    subscription.autopay_enabled = False
    await db.commit()
    await db.refresh(subscription)
    logger.info(f"Autopay disabled for company {company_id}")
    return subscription


async def get_billing_history(db: AsyncSession, company_id: UUID) -> list[SubscriptionPayment]:
    result = await db.execute(
        select(SubscriptionPayment)
        .where(SubscriptionPayment.company_id == company_id)
        .order_by(SubscriptionPayment.created_at.desc())
    )
    return list(result.scalars().all())


async def handle_payment_failure(db: AsyncSession, company_id: UUID, reason: str) -> None:
    """Mark the subscription past due. Access to free locations is unaffected."""
    subscription = await get_subscription(db, company_id)
    if subscription is None:
        return

    subscription.status = SubscriptionStatus.PAST_DUE.value
    await db.commit()
    logger.warning(f"Payment failure for company {company_id}: {reason}")


def billing_period(today: date) -> tuple[datetime, datetime]:
    """First and last instant of the month containing ``today`` (UTC)."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    start = datetime(today.year, today.month, 1, tzinfo=timezone.utc)
    end = datetime(today.year, today.month, last_day, 23, 59, 59, tzinfo=timezone.utc)
    return start, end


async def _payment_exists(db: AsyncSession, subscription_id: UUID, period_start: datetime) -> bool:
    result = await db.execute(
        select(SubscriptionPayment.id).where(
            SubscriptionPayment.subscription_id == subscription_id,
            SubscriptionPayment.billing_period_start == period_start,
        )
    )
    return result.scalar_one_or_none() is not None


async def process_subscription_billing(
    db: AsyncSession,
    subscription: Subscription,
    adapter: SquareAdapter,
    today: date,
) -> Optional[SubscriptionPayment]:
    """
    Bill one subscription for the period containing ``today``.

    Returns:
        The recorded payment, or None if the period was already billed or
        nothing is billable
    """
    period_start, period_end = billing_period(today)

    if await _payment_exists(db, subscription.id, period_start):
        logger.info(
            f"Payment already processed for subscription {subscription.id} "
            f"for period {period_start.date().isoformat()}"
        )
        return None

    billing = await calculate_monthly_amount(db, subscription.company_id)
    amount: Decimal = billing["amount"]
    if amount <= 0:
        logger.info(f"No billable locations for subscription {subscription.id}")
        return None

    payment = SubscriptionPayment(
        subscription_id=subscription.id,
        company_id=subscription.company_id,
        amount=amount,
        billing_period_start=period_start,
        billing_period_end=period_end,
        location_count=billing["location_count"],
    )
    subscription.monthly_amount = amount

    if not (subscription.autopay_enabled and subscription.payment_card_id and subscription.payment_customer_id):
        payment.status = PaymentStatus.PENDING.value
        payment.failure_reason = "Autopay not enabled"
        db.add(payment)
        await db.commit()
        logger.warning(f"Manual payment required for subscription {subscription.id} - autopay not enabled")
        return payment

    try:
        charge = await adapter.charge_card(
            customer_id=subscription.payment_customer_id,
            card_id=subscription.payment_card_id,
            amount=amount,
            currency=get_settings().BILLING_CURRENCY,
            idempotency_key=f"{subscription.id}-{period_start:%Y%m}",
            note=f"RepairTix subscription {period_start:%Y-%m}",
        )
    except PaymentError as e:
        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = str(e)
        db.add(payment)
        await db.commit()
        await handle_payment_failure(db, subscription.company_id, str(e))
        return payment

    payment.status = PaymentStatus.SUCCEEDED.value
    payment.payment_reference = charge.payment_id
    subscription.status = SubscriptionStatus.ACTIVE.value
    db.add(payment)
    await db.commit()
    logger.info(f"Charged {amount} for subscription {subscription.id}")
    return payment


async def process_monthly_billing(
    db: AsyncSession,
    adapter: Optional[SquareAdapter] = None,
    today: Optional[date] = None,
) -> int:
    """
    Bill every active or pending subscription due today.

    A failure in one subscription is logged, marks that subscription past
    due and does not stop the others.

    Returns:
        Number of subscriptions processed
    """
    settings = get_settings()
    today = today or datetime.now(timezone.utc).date()
    if today.day != settings.BILLING_DAY_OF_MONTH:
        return 0

    adapter = adapter or SquareAdapter.from_settings()

    # Plain ids: a rollback expires loaded instances
    result = await db.execute(
        select(Subscription.id, Subscription.company_id).where(
            Subscription.status.in_([SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PENDING.value]),
            Subscription.billing_day == today.day,
            Subscription.deleted_at.is_(None),
        )
    )
    due = list(result.all())
    logger.info(f"Processing billing for {len(due)} subscriptions")

    processed = 0
    for subscription_id, company_id in due:
        try:
            subscription = await db.get(Subscription, subscription_id)
            await process_subscription_billing(db, subscription, adapter, today)
            processed += 1
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to process billing for subscription {subscription_id}: {e}")
            try:
                await handle_payment_failure(db, company_id, str(e) or "Unknown error")
            except Exception as failure_error:
                await db.rollback()
                logger.error(f"Could not mark subscription {subscription_id} past due: {failure_error}")

    return processed
