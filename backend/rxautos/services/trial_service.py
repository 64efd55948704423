"""Trial service: one free trial per account."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.config import settings
from rxautos.models.trial_period import TrialPeriod
from rxautos.utils.dates import days_until, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialStatus:
    is_in_trial: bool
    trial: TrialPeriod | None
    days_remaining: int


async def get_trial(db: AsyncSession, user_id: uuid.UUID) -> TrialPeriod | None:
    result = await db.execute(select(TrialPeriod).where(TrialPeriod.user_id == user_id))
    return result.scalar_one_or_none()


async def create_trial_period(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_type: str | None = None,
    now: datetime | None = None,
) -> TrialPeriod | None:
    """Start a trial. Returns None if the account already had one."""
    if await get_trial(db, user_id) is not None:
        logger.info("User %s already had a trial, not creating another", user_id)
        return None

    now = now or utcnow()
    trial = TrialPeriod(
        user_id=user_id,
        plan_type=plan_type or settings.auto_trial_plan,
        start_date=now,
        end_date=now + timedelta(days=settings.trial_days),
        converted_to_paid=False,
    )
    db.add(trial)
    await db.flush()
    logger.info("Created %d-day trial for user %s (plan=%s)", settings.trial_days, user_id, trial.plan_type)
    return trial


def trial_is_active(trial: TrialPeriod | None, now: datetime) -> bool:
    return trial is not None and not trial.converted_to_paid and trial.start_date <= now < trial.end_date


async def get_trial_status(db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None) -> TrialStatus:
    now = now or utcnow()
    trial = await get_trial(db, user_id)
    if not trial_is_active(trial, now):
        return TrialStatus(is_in_trial=False, trial=trial, days_remaining=0)
    return TrialStatus(is_in_trial=True, trial=trial, days_remaining=max(days_until(trial.end_date, now), 0))


async def convert_trial_to_paid(db: AsyncSession, trial: TrialPeriod) -> TrialPeriod:
    trial.converted_to_paid = True
    await db.flush()
    logger.info("Trial %s for user %s converted to paid", trial.id, trial.user_id)
    return trial
