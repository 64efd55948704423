"""Tests for subscription creation, renewal, status changes and payment effects."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.models.profile import Profile
from rxautos.models.subscription import Subscription
from rxautos.services.subscription_service import (
    activate_from_payment,
    can_create_billing_for_user,
    create_subscription,
    deactivate_from_payment,
    get_blockable_subscriptions,
    get_current_subscription,
    get_expired_subscriptions,
    get_user_active_subscription,
    mark_overdue,
    renew_subscription,
    update_subscription_status,
)
from rxautos.services.trial_service import create_trial_period, get_trial

NOW = datetime(2024, 3, 31, 8, 30, 0)


async def _row(db_session: AsyncSession, user: Profile, status: str, start: datetime, **fields) -> Subscription:
    subscription = Subscription(
        user_id=user.id,
        plan_type=fields.pop("plan_type", "basico"),
        plan_value=Decimal("59.90"),
        status=status,
        start_date=start,
        end_date=fields.pop("end_date", start + timedelta(days=30)),
        **fields,
    )
    db_session.add(subscription)
    await db_session.flush()
    return subscription


class TestCreateSubscription:
    @pytest.mark.asyncio
    async def test_starts_pending_with_grace(self, db_session, basic_user):
        subscription = await create_subscription(db_session, basic_user.id, "profissional", now=NOW)

        assert subscription.status == "pending_payment"
        assert subscription.plan_value == Decimal("299.00")
        assert subscription.billing_cycle == "MONTHLY"
        assert subscription.start_date == NOW
        assert subscription.end_date == NOW + timedelta(days=30)
        assert subscription.grace_period_ends_at == NOW + timedelta(days=5)
        assert basic_user.plan == "profissional"

    @pytest.mark.asyncio
    async def test_alias_plan_sets_catalog_name(self, db_session, basic_user):
        subscription = await create_subscription(db_session, basic_user.id, "premium_plus", now=NOW)
        assert subscription.plan_type == "premium_plus"
        assert subscription.plan_value == Decimal("897.90")
        assert basic_user.plan == "empresarial"

    @pytest.mark.asyncio
    async def test_refused_during_trial(self, db_session, basic_user):
        await create_trial_period(db_session, basic_user.id, now=NOW - timedelta(days=2))
        assert await create_subscription(db_session, basic_user.id, "profissional", now=NOW) is None
        assert basic_user.plan == "basico"

    @pytest.mark.asyncio
    async def test_skip_trial_check(self, db_session, basic_user):
        await create_trial_period(db_session, basic_user.id, now=NOW - timedelta(days=2))
        subscription = await create_subscription(
            db_session, basic_user.id, "profissional", now=NOW, skip_trial_check=True
        )
        assert subscription is not None

    @pytest.mark.asyncio
    async def test_expired_trial_is_converted(self, db_session, basic_user):
        await create_trial_period(db_session, basic_user.id, now=NOW - timedelta(days=40))
        subscription = await create_subscription(db_session, basic_user.id, "basico", now=NOW)

        assert subscription is not None
        assert (await get_trial(db_session, basic_user.id)).converted_to_paid

    @pytest.mark.asyncio
    async def test_billing_eligibility(self, db_session, basic_user):
        assert (await can_create_billing_for_user(db_session, basic_user.id, NOW)).can_create

        trial = await create_trial_period(db_session, basic_user.id, now=NOW)
        eligibility = await can_create_billing_for_user(db_session, basic_user.id, NOW)
        assert not eligibility.can_create
        assert eligibility.trial_end_date == trial.end_date


class TestLookups:
    @pytest.mark.asyncio
    async def test_current_is_latest_start_when_created_together(self, db_session, basic_user):
        await _row(db_session, basic_user, "cancelled", NOW - timedelta(days=60))
        latest = await _row(db_session, basic_user, "blocked", NOW - timedelta(days=5))

        current = await get_current_subscription(db_session, basic_user.id)
        assert current.id == latest.id

    @pytest.mark.asyncio
    async def test_active_lookup_ignores_blocked(self, db_session, basic_user):
        pending = await _row(db_session, basic_user, "pending_payment", NOW - timedelta(days=60))
        await _row(db_session, basic_user, "blocked", NOW - timedelta(days=5))

        active = await get_user_active_subscription(db_session, basic_user.id)
        assert active.id == pending.id

    @pytest.mark.asyncio
    async def test_expired_and_blockable(self, db_session, basic_user, make_profile):
        expired = await _row(db_session, basic_user, "active", NOW - timedelta(days=31))
        other = await make_profile()
        blockable = await _row(
            db_session,
            other,
            "pending_payment",
            NOW - timedelta(days=40),
            grace_period_ends_at=NOW - timedelta(seconds=1),
        )

        assert [s.id for s in await get_expired_subscriptions(db_session, NOW)] == [expired.id]
        assert [s.id for s in await get_blockable_subscriptions(db_session, NOW)] == [blockable.id]

    @pytest.mark.asyncio
    async def test_expired_excludes_trial_accounts(self, db_session, basic_user):
        await _row(db_session, basic_user, "active", NOW - timedelta(days=31))
        await create_trial_period(db_session, basic_user.id, now=NOW - timedelta(days=1))
        assert await get_expired_subscriptions(db_session, NOW) == []


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_pending_opens_grace(self, db_session, basic_user):
        subscription = await _row(db_session, basic_user, "active", NOW - timedelta(days=30))
        await update_subscription_status(db_session, subscription, "pending_payment", "pay_9", now=NOW)

        assert subscription.status == "pending_payment"
        assert subscription.last_payment_id == "pay_9"
        assert subscription.grace_period_ends_at == NOW + timedelta(days=5)

    @pytest.mark.asyncio
    async def test_other_status_keeps_grace(self, db_session, basic_user):
        grace = NOW - timedelta(days=1)
        subscription = await _row(
            db_session, basic_user, "pending_payment", NOW - timedelta(days=40), grace_period_ends_at=grace
        )
        await update_subscription_status(db_session, subscription, "blocked", now=NOW)
        assert subscription.grace_period_ends_at == grace

    @pytest.mark.asyncio
    async def test_renew_rolls_from_end_date(self, db_session, basic_user):
        subscription = await _row(db_session, basic_user, "active", NOW - timedelta(days=30))
        old_end = subscription.end_date

        await renew_subscription(db_session, subscription)

        assert subscription.start_date == old_end
        assert subscription.end_date == old_end + timedelta(days=30)
        assert subscription.status == "pending_payment"
        assert subscription.grace_period_ends_at == subscription.end_date + timedelta(days=5)


class TestPaymentEffects:
    @pytest.mark.asyncio
    async def test_activation_clamps_to_month_end(self, db_session, basic_user):
        subscription = await activate_from_payment(db_session, basic_user, "pay_1", "sub_1", now=NOW)

        assert basic_user.plan_ends_at == datetime(2024, 4, 30, 8, 30, 0)
        assert basic_user.billing_subscription_id == "sub_1"
        assert subscription.status == "active"
        assert subscription.plan_type == "basico"
        assert subscription.plan_value == Decimal("59.90")

    @pytest.mark.asyncio
    async def test_activation_without_plan_uses_default(self, db_session, make_profile):
        user = await make_profile(plan=None)
        subscription = await activate_from_payment(db_session, user, "pay_1", now=NOW)
        assert subscription.plan_type == "basico"
        assert user.billing_subscription_id is None

    @pytest.mark.asyncio
    async def test_activation_reuses_current_row(self, db_session, basic_user):
        existing = await _row(db_session, basic_user, "blocked", NOW - timedelta(days=40))
        subscription = await activate_from_payment(db_session, basic_user, "pay_2", now=NOW)
        assert subscription.id == existing.id
        assert subscription.status == "active"

    @pytest.mark.asyncio
    async def test_overdue_without_row(self, db_session, basic_user):
        assert await mark_overdue(db_session, basic_user, "pay_3", now=NOW) is None

    @pytest.mark.asyncio
    async def test_deactivation_without_row_still_ends_window(self, db_session, basic_user):
        assert await deactivate_from_payment(db_session, basic_user, "pay_4", now=NOW) is None
        assert basic_user.plan_ends_at == NOW
