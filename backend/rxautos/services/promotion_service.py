"""Promotional campaigns: enrollment and promotional access windows."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.models.profile import Profile
from rxautos.models.promotional_campaign import PromotionalCampaign
from rxautos.utils.dates import days_until, utcnow, window_covers
from rxautos.utils.documents import only_digits, validate_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyPromotionResult:
    success: bool
    message: str
    promotional_end_date: datetime | None = None


@dataclass(frozen=True)
class PromotionalAccess:
    has_access: bool
    is_promotional: bool
    days_remaining: int
    end_date: datetime | None
    campaign_name: str | None


async def get_active_campaign(db: AsyncSession, now: datetime | None = None) -> PromotionalCampaign | None:
    """Newest active campaign for new users whose dates cover ``now``.

    A missing start or end date leaves that side of the window open.
    """
    now = now or utcnow()
    result = await db.execute(
        select(PromotionalCampaign)
        .where(
            PromotionalCampaign.is_active.is_(True),
            PromotionalCampaign.applies_to_new_users.is_(True),
            or_(PromotionalCampaign.start_date.is_(None), PromotionalCampaign.start_date <= now),
            or_(PromotionalCampaign.end_date.is_(None), PromotionalCampaign.end_date >= now),
        )
        .order_by(PromotionalCampaign.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def apply_promotion_to_user(
    db: AsyncSession,
    profile: Profile,
    document: str | None,
    now: datetime | None = None,
) -> ApplyPromotionResult:
    """Enroll ``profile`` in the active campaign.

    The campaign row is locked while its use counter is checked and bumped,
    so concurrent enrollments cannot overshoot ``max_uses``.
    """
    now = now or utcnow()

    if profile.promotional_campaign_id is not None:
        return ApplyPromotionResult(False, "Promotion already applied to this account")

    campaign = await get_active_campaign(db, now)
    if campaign is None:
        return ApplyPromotionResult(False, "No active promotional campaign")

    result = await db.execute(
        select(PromotionalCampaign).where(PromotionalCampaign.id == campaign.id).with_for_update()
    )
    campaign = result.scalar_one()

    if campaign.requires_valid_document:
        is_valid, _ = validate_document(document or "")
        if not is_valid:
            return ApplyPromotionResult(False, "A valid CPF or CNPJ is required for this promotion")

    if not campaign.has_uses_left:
        return ApplyPromotionResult(False, "This promotion has reached its usage limit")

    ends_at = now + timedelta(days=campaign.free_days)
    profile.promotional_campaign_id = campaign.id
    profile.promotional_started_at = now
    profile.promotional_ends_at = ends_at
    if document:
        profile.document = only_digits(document)
    campaign.current_uses += 1
    await db.flush()

    logger.info(
        "User %s enrolled in campaign %r until %s (%d/%s uses)",
        profile.id,
        campaign.name,
        ends_at,
        campaign.current_uses,
        campaign.max_uses,
    )
    return ApplyPromotionResult(True, f"Promotion applied: {campaign.free_days} free days", ends_at)


def check_promotional_access(
    profile: Profile,
    campaign: PromotionalCampaign | None,
    now: datetime | None = None,
) -> PromotionalAccess:
    """Is the profile inside its promotional window, with the campaign still below its use cap?"""
    now = now or utcnow()
    is_promotional = profile.promotional_ends_at is not None
    in_window = window_covers(profile.promotional_started_at, profile.promotional_ends_at, now)
    within_cap = campaign is None or campaign.has_uses_left

    if in_window and within_cap:
        return PromotionalAccess(
            has_access=True,
            is_promotional=True,
            days_remaining=max(days_until(profile.promotional_ends_at, now), 0),
            end_date=profile.promotional_ends_at,
            campaign_name=campaign.name if campaign else None,
        )
    return PromotionalAccess(
        has_access=False,
        is_promotional=is_promotional,
        days_remaining=0,
        end_date=profile.promotional_ends_at,
        campaign_name=campaign.name if campaign else None,
    )


# ---------------------------------------------------------------------------
# Campaign administration
# ---------------------------------------------------------------------------


async def list_campaigns(db: AsyncSession) -> list[PromotionalCampaign]:
    result = await db.execute(select(PromotionalCampaign).order_by(PromotionalCampaign.created_at.desc()))
    return list(result.scalars().all())


async def create_campaign(db: AsyncSession, **fields) -> PromotionalCampaign:
    """Insert a campaign. ``current_uses`` always starts at zero."""
    campaign = PromotionalCampaign(current_uses=0, **fields)
    db.add(campaign)
    await db.flush()
    await db.refresh(campaign)
    logger.info(
        "Created promotional campaign %r (%d free days, max_uses=%s)",
        campaign.name,
        campaign.free_days,
        campaign.max_uses,
    )
    return campaign


async def set_campaign_active(db: AsyncSession, campaign: PromotionalCampaign, is_active: bool) -> PromotionalCampaign:
    campaign.is_active = is_active
    await db.flush()
    await db.refresh(campaign)
    logger.info("Campaign %r %s", campaign.name, "activated" if is_active else "deactivated")
    return campaign


async def close_ended_campaigns(db: AsyncSession, now: datetime | None = None) -> int:
    """Deactivate campaigns whose end date has passed. Returns how many were closed.

    Enrolled accounts keep their own promotional window; only new
    enrollments stop.
    """
    now = now or utcnow()
    result = await db.execute(
        select(PromotionalCampaign).where(
            PromotionalCampaign.is_active.is_(True),
            PromotionalCampaign.end_date.is_not(None),
            PromotionalCampaign.end_date < now,
        )
    )
    ended = result.scalars().all()
    for campaign in ended:
        campaign.is_active = False
        logger.info("Closed promotional campaign %r (ended %s)", campaign.name, campaign.end_date)
    await db.flush()
    return len(ended)
