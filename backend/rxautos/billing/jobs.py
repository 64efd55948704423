"""Periodic billing cycle: renew expired subscriptions, block unpaid ones, close ended campaigns.

Triggered by cron through ``POST /api/v1/billing/jobs/run`` or directly::

    cd backend && python -m rxautos.billing.jobs
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing import asaas_client
from rxautos.billing.asaas_client import AsaasError
from rxautos.billing.plans import get_plan
from rxautos.database import async_session_factory
from rxautos.models.subscription import Subscription
from rxautos.services.promotion_service import close_ended_campaigns
from rxautos.services.subscription_service import (
    can_create_billing_for_user,
    get_blockable_subscriptions,
    get_expired_subscriptions,
    get_profile,
    renew_subscription,
    update_subscription_status,
)
from rxautos.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass
class BillingCycleResult:
    total_expired: int = 0
    processed_expired: int = 0
    total_blocked: int = 0
    processed_blocked: int = 0
    closed_campaigns: int = 0
    errors: list[str] = field(default_factory=list)


async def _charge_renewal(db: AsyncSession, subscription: Subscription, now: datetime) -> str | None:
    """Create the Asaas charge for the renewed window. Returns the payment id.

    Due on the first day of the new window, or today when that day has
    already passed (Asaas rejects due dates in the past).
    """
    profile = await get_profile(db, subscription.user_id)
    if profile is None or not profile.billing_customer_id:
        logger.warning("User %s has no Asaas customer, renewing without a charge", subscription.user_id)
        return None

    plan = get_plan(subscription.plan_type)
    payment = await asaas_client.create_payment(
        customer_id=profile.billing_customer_id,
        value=subscription.plan_value,
        due_date=max(subscription.start_date.date(), now.date()),
        description=f"{plan.display_name} plan renewal",
        external_reference=str(profile.id),
    )
    return payment.get("id")


async def _renew_expired(db: AsyncSession, subscription: Subscription, now: datetime) -> None:
    eligibility = await can_create_billing_for_user(db, subscription.user_id, now)
    if not eligibility.can_create:
        raise ValueError(f"{eligibility.reason} until {eligibility.trial_end_date:%Y-%m-%d}")

    # Local renewal first: the provider call is the last thing that can fail.
    await renew_subscription(db, subscription)
    payment_id = await _charge_renewal(db, subscription, now)
    if payment_id:
        subscription.last_payment_id = payment_id
        await db.flush()


async def run_billing_cycle(db: AsyncSession, now: datetime | None = None) -> BillingCycleResult:
    """Process one billing cycle. Failures are collected per subscription."""
    now = now or utcnow()
    result = BillingCycleResult()

    expired = await get_expired_subscriptions(db, now)
    result.total_expired = len(expired)
    for subscription in expired:
        subscription_id = subscription.id
        try:
            async with db.begin_nested():
                await _renew_expired(db, subscription, now)
            result.processed_expired += 1
        except (AsaasError, httpx.HTTPError, SQLAlchemyError, ValueError) as e:
            logger.warning("Renewal failed for subscription %s: %s", subscription_id, e)
            result.errors.append(f"Subscription {subscription_id}: {e}")

    blockable = await get_blockable_subscriptions(db, now)
    result.total_blocked = len(blockable)
    for subscription in blockable:
        subscription_id = subscription.id
        try:
            async with db.begin_nested():
                await update_subscription_status(db, subscription, "blocked", now=now)
            result.processed_blocked += 1
        except SQLAlchemyError as e:
            logger.warning("Blocking failed for subscription %s: %s", subscription_id, e)
            result.errors.append(f"Subscription {subscription_id}: {e}")

    try:
        async with db.begin_nested():
            result.closed_campaigns = await close_ended_campaigns(db, now)
    except SQLAlchemyError as e:
        logger.warning("Closing ended campaigns failed: %s", e)
        result.errors.append(f"Campaigns: {e}")

    logger.info(
        "Billing cycle done: renewed %d/%d, blocked %d/%d, closed %d campaigns, %d errors",
        result.processed_expired,
        result.total_expired,
        result.processed_blocked,
        result.total_blocked,
        result.closed_campaigns,
        len(result.errors),
    )
    return result


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    async with async_session_factory() as db:
        result = await run_billing_cycle(db)
        await db.commit()
    print(f"Renewed: {result.processed_expired}/{result.total_expired}")
    print(f"Blocked: {result.processed_blocked}/{result.total_blocked}")
    print(f"Closed campaigns: {result.closed_campaigns}")
    for error in result.errors:
        print(f"  ! {error}")


if __name__ == "__main__":
    asyncio.run(main())
