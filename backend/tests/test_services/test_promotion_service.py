"""Tests for promotional campaign enrollment and access windows."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.models.profile import Profile
from rxautos.models.promotional_campaign import PromotionalCampaign
from rxautos.services.promotion_service import (
    apply_promotion_to_user,
    check_promotional_access,
    close_ended_campaigns,
    create_campaign,
    get_active_campaign,
    list_campaigns,
    set_campaign_active,
)

NOW = datetime(2024, 7, 15, 10, 0, 0)
VALID_CNPJ = "11.222.333/0001-81"


async def _campaign(db_session: AsyncSession, **fields) -> PromotionalCampaign:
    values = {"name": "Feirão de Julho", "free_days": 30}
    values.update(fields)
    campaign = PromotionalCampaign(**values)
    db_session.add(campaign)
    await db_session.flush()
    return campaign


def _enrolled(start: datetime | None, end: datetime | None) -> Profile:
    return Profile(
        email="promo@test.com",
        full_name="Promo",
        promotional_started_at=start,
        promotional_ends_at=end,
    )


class TestActiveCampaign:
    @pytest.mark.asyncio
    async def test_none(self, db_session, setup_test_db):
        assert await get_active_campaign(db_session, NOW) is None

    @pytest.mark.asyncio
    async def test_open_ended_dates(self, db_session):
        campaign = await _campaign(db_session)
        assert (await get_active_campaign(db_session, NOW)).id == campaign.id

    @pytest.mark.asyncio
    async def test_inactive_and_out_of_window_excluded(self, db_session):
        await _campaign(db_session, is_active=False)
        await _campaign(db_session, start_date=NOW + timedelta(days=1))
        await _campaign(db_session, end_date=NOW - timedelta(days=1))
        await _campaign(db_session, applies_to_new_users=False)
        assert await get_active_campaign(db_session, NOW) is None

    @pytest.mark.asyncio
    async def test_newest_wins(self, db_session):
        await _campaign(db_session, name="Old", created_at=NOW - timedelta(days=10))
        await _campaign(db_session, name="New", created_at=NOW - timedelta(days=1))
        assert (await get_active_campaign(db_session, NOW)).name == "New"


class TestApplyPromotion:
    @pytest.mark.asyncio
    async def test_success(self, db_session, basic_user):
        campaign = await _campaign(db_session, max_uses=10, current_uses=3)

        result = await apply_promotion_to_user(db_session, basic_user, VALID_CNPJ, NOW)

        assert result.success
        assert result.message == "Promotion applied: 30 free days"
        assert result.promotional_end_date == NOW + timedelta(days=30)
        assert basic_user.promotional_campaign_id == campaign.id
        assert basic_user.promotional_started_at == NOW
        assert basic_user.document == "11222333000181"
        assert campaign.current_uses == 4

    @pytest.mark.asyncio
    async def test_already_enrolled(self, db_session, basic_user):
        await _campaign(db_session)
        await apply_promotion_to_user(db_session, basic_user, None, NOW)

        result = await apply_promotion_to_user(db_session, basic_user, None, NOW)
        assert not result.success
        assert result.message == "Promotion already applied to this account"

    @pytest.mark.asyncio
    async def test_no_campaign(self, db_session, basic_user):
        result = await apply_promotion_to_user(db_session, basic_user, None, NOW)
        assert not result.success
        assert result.message == "No active promotional campaign"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [None, "", "123.456.789-00", "11.111.111/1111-11"])
    async def test_document_required(self, db_session, basic_user, document):
        campaign = await _campaign(db_session, requires_valid_document=True)
        result = await apply_promotion_to_user(db_session, basic_user, document, NOW)
        assert not result.success
        assert result.message == "A valid CPF or CNPJ is required for this promotion"
        assert campaign.current_uses == 0
        assert basic_user.promotional_campaign_id is None

    @pytest.mark.asyncio
    async def test_usage_limit(self, db_session, basic_user):
        await _campaign(db_session, max_uses=2, current_uses=2)
        result = await apply_promotion_to_user(db_session, basic_user, None, NOW)
        assert not result.success
        assert result.message == "This promotion has reached its usage limit"

    @pytest.mark.asyncio
    async def test_last_slot(self, db_session, basic_user, make_profile):
        campaign = await _campaign(db_session, max_uses=1)
        first = await apply_promotion_to_user(db_session, basic_user, None, NOW)
        other = await make_profile()
        second = await apply_promotion_to_user(db_session, other, None, NOW)

        assert first.success
        assert not second.success
        assert campaign.current_uses == 1


class TestPromotionalAccess:
    def test_inside_window(self):
        profile = _enrolled(NOW - timedelta(days=5), NOW + timedelta(days=25))
        access = check_promotional_access(profile, PromotionalCampaign(name="X", max_uses=None, current_uses=9), NOW)
        assert access.has_access
        assert access.days_remaining == 25
        assert access.campaign_name == "X"

    def test_missing_start_is_open(self):
        access = check_promotional_access(_enrolled(None, NOW + timedelta(days=1)), None, NOW)
        assert access.has_access

    def test_before_start(self):
        access = check_promotional_access(_enrolled(NOW + timedelta(days=1), NOW + timedelta(days=30)), None, NOW)
        assert not access.has_access
        assert access.is_promotional

    def test_ended(self):
        access = check_promotional_access(_enrolled(NOW - timedelta(days=30), NOW), None, NOW)
        assert not access.has_access
        assert access.days_remaining == 0

    def test_never_enrolled(self):
        access = check_promotional_access(_enrolled(None, None), None, NOW)
        assert not access.has_access
        assert not access.is_promotional

    def test_campaign_over_cap(self):
        profile = _enrolled(NOW - timedelta(days=5), NOW + timedelta(days=25))
        campaign = PromotionalCampaign(name="X", max_uses=5, current_uses=6)
        assert not check_promotional_access(profile, campaign, NOW).has_access

    def test_campaign_at_cap(self):
        """Reaching max_uses ends promotional access, even for enrolled accounts."""
        profile = _enrolled(NOW - timedelta(days=5), NOW + timedelta(days=25))
        campaign = PromotionalCampaign(name="X", max_uses=5, current_uses=5)
        access = check_promotional_access(profile, campaign, NOW)
        assert not access.has_access
        assert access.is_promotional

    def test_campaign_below_cap(self):
        profile = _enrolled(NOW - timedelta(days=5), NOW + timedelta(days=25))
        campaign = PromotionalCampaign(name="X", max_uses=5, current_uses=4)
        assert check_promotional_access(profile, campaign, NOW).has_access


class TestCampaignAdmin:
    @pytest.mark.asyncio
    async def test_create_starts_with_zero_uses(self, db_session, setup_test_db):
        campaign = await create_campaign(db_session, name="Black Friday", free_days=15, max_uses=50)

        assert campaign.id is not None
        assert campaign.current_uses == 0
        assert campaign.is_active is True
        assert (await get_active_campaign(db_session)).id == campaign.id

    @pytest.mark.asyncio
    async def test_deactivate_hides_from_enrollment(self, db_session, basic_user):
        campaign = await _campaign(db_session)

        await set_campaign_active(db_session, campaign, False)

        assert await get_active_campaign(db_session, NOW) is None
        result = await apply_promotion_to_user(db_session, basic_user, None, NOW)
        assert result.message == "No active promotional campaign"

    @pytest.mark.asyncio
    async def test_list_newest_first(self, db_session, setup_test_db):
        await _campaign(db_session, name="Old", created_at=NOW - timedelta(days=10), is_active=False)
        await _campaign(db_session, name="New", created_at=NOW - timedelta(days=1))

        assert [c.name for c in await list_campaigns(db_session)] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_close_ended_campaigns(self, db_session, setup_test_db):
        ended = await _campaign(db_session, name="Ended", end_date=NOW - timedelta(hours=1))
        running = await _campaign(db_session, name="Running", end_date=NOW + timedelta(days=3))
        open_ended = await _campaign(db_session, name="Open")
        already_off = await _campaign(db_session, name="Off", end_date=NOW - timedelta(days=9), is_active=False)

        closed = await close_ended_campaigns(db_session, NOW)

        assert closed == 1
        for campaign in (ended, running, open_ended, already_off):
            await db_session.refresh(campaign)
        assert ended.is_active is False
        assert running.is_active is True
        assert open_ended.is_active is True
        assert already_off.is_active is False

    @pytest.mark.asyncio
    async def test_closing_keeps_enrolled_windows(self, db_session, basic_user):
        await _campaign(db_session, end_date=NOW + timedelta(days=1))
        await apply_promotion_to_user(db_session, basic_user, None, NOW)

        await close_ended_campaigns(db_session, NOW + timedelta(days=2))

        assert basic_user.promotional_ends_at == NOW + timedelta(days=30)
