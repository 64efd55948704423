"""Entitlement: is this account currently allowed to use gated features?

Sources are checked in a fixed order and the first one that grants access
wins: trial, promotional window, unlimited/privileged plan, subscription.
A failed read in one of the first three steps only disables that step.
A failed subscription read denies with ``connection_error``. Every read runs
in its own savepoint so a failed statement does not poison the request
transaction (PostgreSQL refuses further statements after an error).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.plans import is_privileged_plan
from rxautos.models.profile import Profile
from rxautos.models.promotional_campaign import PromotionalCampaign
from rxautos.services.promotion_service import check_promotional_access
from rxautos.services.subscription_service import get_current_subscription
from rxautos.services.trial_service import get_trial_status
from rxautos.utils.dates import utcnow

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "trial", "promotional_active"})


@dataclass(frozen=True)
class Entitlement:
    permitted: bool
    code: str
    reason: str
    warning: bool = False
    days_remaining: int | None = None
    campaign_name: str | None = None
    subscription_id: uuid.UUID | None = None


def _denied(code: str, reason: str, subscription_id: uuid.UUID | None = None) -> Entitlement:
    return Entitlement(permitted=False, code=code, reason=reason, subscription_id=subscription_id)


async def _trial_step(db: AsyncSession, account_id: uuid.UUID, now: datetime) -> Entitlement | None:
    try:
        async with db.begin_nested():
            trial = await get_trial_status(db, account_id, now)
    except SQLAlchemyError:
        logger.exception("Trial lookup failed for %s, skipping trial check", account_id)
        return None
    if not trial.is_in_trial:
        return None
    return Entitlement(
        permitted=True,
        code="trial",
        reason=f"Free trial active: {trial.days_remaining} days remaining",
        days_remaining=trial.days_remaining,
    )


async def _promotional_step(db: AsyncSession, profile: Profile, now: datetime) -> Entitlement | None:
    if profile.promotional_ends_at is None:
        return None
    campaign = None
    try:
        if profile.promotional_campaign_id is not None:
            async with db.begin_nested():
                campaign = await db.get(PromotionalCampaign, profile.promotional_campaign_id)
    except SQLAlchemyError:
        logger.exception("Campaign lookup failed for %s, skipping promotional check", profile.id)
        return None

    access = check_promotional_access(profile, campaign, now)
    if not access.has_access:
        return None
    label = access.campaign_name or "promotion"
    return Entitlement(
        permitted=True,
        code="promotional",
        reason=f"Promotional access ({label}): {access.days_remaining} days remaining",
        days_remaining=access.days_remaining,
        campaign_name=access.campaign_name,
    )


def _subscription_step(subscription, profile: Profile | None, now: datetime) -> Entitlement:
    if subscription is None:
        if profile is not None and profile.promotional_ends_at is not None and profile.promotional_ends_at <= now:
            return _denied("promotional_expired", "Your promotional period has ended. Subscribe to keep access.")
        return _denied("no_subscription", "No active subscription found")

    if subscription.status in ACTIVE_STATUSES:
        if subscription.end_date is None or subscription.end_date > now:
            return Entitlement(
                permitted=True,
                code="subscription_active",
                reason="Subscription active",
                subscription_id=subscription.id,
            )
        return _denied("subscription_expired", "Subscription expired", subscription.id)

    if subscription.status == "pending_payment":
        grace_ends = subscription.grace_period_ends_at
        if grace_ends is not None and now <= grace_ends:
            return Entitlement(
                permitted=True,
                code="grace_period",
                reason=f"Payment pending. Access allowed until {grace_ends:%Y-%m-%d}",
                warning=True,
                subscription_id=subscription.id,
            )
        return _denied(
            "grace_period_expired",
            "Grace period expired. Pay the pending invoice to reactivate.",
            subscription.id,
        )

    if subscription.status == "blocked":
        return _denied("blocked", "Subscription blocked for non-payment", subscription.id)

    return _denied("invalid_status", f"Invalid subscription status: {subscription.status}", subscription.id)


async def evaluate_entitlement(
    db: AsyncSession, account_id: uuid.UUID, now: datetime | None = None
) -> Entitlement:
    now = now or utcnow()

    granted = await _trial_step(db, account_id, now)
    if granted:
        return granted

    try:
        async with db.begin_nested():
            profile = await db.get(Profile, account_id)
    except SQLAlchemyError:
        logger.exception("Profile lookup failed for %s, skipping promotional and plan checks", account_id)
        profile = None

    if profile is not None:
        granted = await _promotional_step(db, profile, now)
        if granted:
            return granted

        if profile.unlimited_access or is_privileged_plan(profile.plan):
            return Entitlement(permitted=True, code="unlimited", reason="Unlimited access")

    try:
        async with db.begin_nested():
            subscription = await get_current_subscription(db, account_id)
    except SQLAlchemyError:
        logger.exception("Subscription lookup failed for %s", account_id)
        return _denied("connection_error", "Could not verify your subscription. Try again later.")

    return _subscription_step(subscription, profile, now)
