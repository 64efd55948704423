"""Subscription service: lifecycle of user subscriptions and plan windows."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.plans import get_plan, resolve_plan_name
from rxautos.config import settings
from rxautos.models.profile import Profile
from rxautos.models.subscription import Subscription
from rxautos.services.trial_service import convert_trial_to_paid, get_trial, trial_is_active
from rxautos.utils.dates import add_months, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BillingEligibility:
    can_create: bool
    reason: str | None = None
    trial_end_date: datetime | None = None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile | None:
    return await db.get(Profile, user_id)


async def get_profile_by_billing_customer(db: AsyncSession, customer_id: str) -> Profile | None:
    """Look up a profile by its Asaas customer id (used by webhooks)."""
    result = await db.execute(select(Profile).where(Profile.billing_customer_id == customer_id))
    return result.scalar_one_or_none()


async def get_current_subscription(db: AsyncSession, user_id: uuid.UUID) -> Subscription | None:
    """The most recently created subscription row, whatever its status."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_user_active_subscription(db: AsyncSession, user_id: uuid.UUID) -> Subscription | None:
    """Latest subscription that is ``active`` or ``pending_payment``."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status.in_(("active", "pending_payment")),
        )
        .order_by(Subscription.created_at.desc(), Subscription.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def can_create_billing_for_user(
    db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None
) -> BillingEligibility:
    """Accounts inside a running trial are not charged."""
    now = now or utcnow()
    trial = await get_trial(db, user_id)
    if trial_is_active(trial, now):
        return BillingEligibility(
            can_create=False,
            reason="User is still in the free trial period",
            trial_end_date=trial.end_date,
        )
    return BillingEligibility(can_create=True)


async def create_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_type: str,
    now: datetime | None = None,
    billing_cycle: str = "MONTHLY",
    skip_trial_check: bool = False,
) -> Subscription | None:
    """Create a subscription awaiting its first payment.

    Returns None while the account is inside its trial. An expired,
    unconverted trial is marked as converted. The row starts as
    ``pending_payment`` with a grace period; the first RECEIVED/CONFIRMED
    webhook activates it.
    """
    now = now or utcnow()

    if not skip_trial_check:
        trial = await get_trial(db, user_id)
        if trial_is_active(trial, now):
            logger.info("User %s is in trial until %s, not creating a paid subscription", user_id, trial.end_date)
            return None
        if trial is not None and not trial.converted_to_paid:
            await convert_trial_to_paid(db, trial)

    plan = get_plan(plan_type)
    subscription = Subscription(
        user_id=user_id,
        plan_type=plan_type,
        plan_value=plan.price_monthly,
        billing_cycle=billing_cycle,
        status="pending_payment",
        start_date=now,
        end_date=now + timedelta(days=settings.subscription_period_days),
        grace_period_ends_at=now + timedelta(days=settings.grace_period_days),
    )
    db.add(subscription)

    profile = await get_profile(db, user_id)
    if profile is not None:
        profile.plan = resolve_plan_name(plan_type)

    await db.flush()
    logger.info("Created subscription %s for user %s: plan=%s (%s)", subscription.id, user_id, plan_type, plan.display_name)
    return subscription


async def update_subscription_status(
    db: AsyncSession,
    subscription: Subscription,
    status: str,
    payment_id: str | None = None,
    now: datetime | None = None,
) -> Subscription:
    """Set the status; moving to ``pending_payment`` opens a grace period."""
    now = now or utcnow()
    subscription.status = status
    if payment_id:
        subscription.last_payment_id = payment_id
    if status == "pending_payment":
        subscription.grace_period_ends_at = now + timedelta(days=settings.grace_period_days)
    await db.flush()
    logger.info("Subscription %s status -> %s", subscription.id, status)
    return subscription


async def renew_subscription(db: AsyncSession, subscription: Subscription) -> Subscription:
    """Roll the window forward from the old end date; payment is due again."""
    new_start = subscription.end_date or utcnow()
    new_end = new_start + timedelta(days=settings.subscription_period_days)
    subscription.start_date = new_start
    subscription.end_date = new_end
    subscription.status = "pending_payment"
    subscription.grace_period_ends_at = new_end + timedelta(days=settings.grace_period_days)
    await db.flush()
    logger.info("Renewed subscription %s until %s", subscription.id, new_end)
    return subscription


async def get_expired_subscriptions(db: AsyncSession, now: datetime | None = None) -> list[Subscription]:
    """Active subscriptions past their end date, excluding accounts in trial."""
    now = now or utcnow()
    result = await db.execute(
        select(Subscription).where(
            Subscription.status == "active",
            Subscription.end_date.is_not(None),
            Subscription.end_date < now,
        )
    )
    expired = []
    for subscription in result.scalars().all():
        trial = await get_trial(db, subscription.user_id)
        if trial_is_active(trial, now):
            logger.info("User %s is in trial, skipping renewal charge", subscription.user_id)
            continue
        expired.append(subscription)
    return expired


async def get_blockable_subscriptions(db: AsyncSession, now: datetime | None = None) -> list[Subscription]:
    """Pending subscriptions whose grace period is over."""
    now = now or utcnow()
    result = await db.execute(
        select(Subscription).where(
            Subscription.status == "pending_payment",
            Subscription.grace_period_ends_at.is_not(None),
            Subscription.grace_period_ends_at < now,
        )
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Payment side effects (called by the webhook dispatcher)
# ---------------------------------------------------------------------------


async def activate_from_payment(
    db: AsyncSession,
    profile: Profile,
    payment_id: str,
    provider_subscription_id: str | None = None,
    now: datetime | None = None,
) -> Subscription:
    """Open a one-month plan window starting now.

    The window is always one calendar month, whatever the subscription's
    billing_cycle says.
    """
    now = now or utcnow()
    ends_at = add_months(now, 1)

    profile.plan_started_at = now
    profile.plan_ends_at = ends_at
    if provider_subscription_id:
        profile.billing_subscription_id = provider_subscription_id

    subscription = await get_current_subscription(db, profile.id)
    if subscription is None:
        plan_type = profile.plan or settings.auto_trial_plan
        subscription = Subscription(
            user_id=profile.id,
            plan_type=plan_type,
            plan_value=get_plan(plan_type).price_monthly,
        )
        db.add(subscription)

    subscription.status = "active"
    subscription.start_date = now
    subscription.end_date = ends_at
    subscription.grace_period_ends_at = None
    subscription.last_payment_id = payment_id
    await db.flush()
    logger.info("Subscription activated for user %s until %s (payment %s)", profile.id, ends_at, payment_id)
    return subscription


async def mark_overdue(
    db: AsyncSession, profile: Profile, payment_id: str, now: datetime | None = None
) -> Subscription | None:
    """Overdue payment: keep access through the grace period."""
    subscription = await get_current_subscription(db, profile.id)
    if subscription is None:
        logger.info("Overdue payment %s for user %s without a subscription row", payment_id, profile.id)
        return None
    return await update_subscription_status(db, subscription, "pending_payment", payment_id, now=now)


async def deactivate_from_payment(
    db: AsyncSession, profile: Profile, payment_id: str, now: datetime | None = None
) -> Subscription | None:
    """Refund: the plan window ends now."""
    now = now or utcnow()
    profile.plan_ends_at = now

    subscription = await get_current_subscription(db, profile.id)
    if subscription is not None:
        subscription.status = "cancelled"
        subscription.end_date = now
        subscription.last_payment_id = payment_id
    await db.flush()
    logger.info("Subscription deactivated for user %s (payment %s)", profile.id, payment_id)
    return subscription
