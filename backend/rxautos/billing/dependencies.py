"""Plan gating dependencies: enforce entitlement and capacity limits.

The capacity checks lock the owner's profile row first. The lock lives in
the request's session (``get_db`` is cached per request), so the check and
the vehicle write that follows commit together and concurrent requests of
the same owner run one after the other.
"""

import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.auth.dependencies import get_current_active_user
from rxautos.billing.access import CapacityDecision, can_add_vehicle, can_feature_vehicle
from rxautos.billing.plans import PlanConfig, get_plan
from rxautos.database import get_db
from rxautos.models.profile import Profile
from rxautos.services.entitlement_service import Entitlement, evaluate_entitlement

logger = logging.getLogger(__name__)

UPGRADE_URL = "/api/v1/billing/plans"


async def lock_profile(db: AsyncSession, profile_id) -> Profile:
    """SELECT ... FOR UPDATE on the profile (no-op lock on SQLite)."""
    result = await db.execute(select(Profile).where(Profile.id == profile_id).with_for_update())
    return result.scalar_one()


def _capacity_exceeded(decision: CapacityDecision, plan: PlanConfig) -> HTTPException:
    if decision.current_count is None:
        # usage could not be read
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage is temporarily unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "message": decision.reason,
            "limit": decision.max_allowed,
            "current": decision.current_count,
            "plan": plan.name,
            "upgrade_url": UPGRADE_URL,
        },
    )


async def get_plan_config(user: Profile = Depends(get_current_active_user)) -> PlanConfig:
    return get_plan(user.plan)


async def require_entitlement(
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_active_user),
) -> Entitlement:
    """Raise 402 unless the account is currently entitled (trial, promo, plan or subscription)."""
    entitlement = await evaluate_entitlement(db, user.id)
    if not entitlement.permitted:
        logger.info("Entitlement denied for user %s: %s", user.id, entitlement.code)
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": entitlement.reason,
                "code": entitlement.code,
                "upgrade_url": UPGRADE_URL,
            },
        )
    return entitlement


async def check_vehicle_limit(
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_active_user),
) -> CapacityDecision:
    """Raise 402 if the owner cannot list another vehicle."""
    profile = await lock_profile(db, user.id)
    decision = await can_add_vehicle(db, profile.id)
    if not decision.permitted:
        raise _capacity_exceeded(decision, get_plan(profile.plan))
    return decision


async def check_featured_limit(
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_active_user),
) -> CapacityDecision:
    """Raise 402 if the owner cannot feature another vehicle."""
    profile = await lock_profile(db, user.id)
    decision = await can_feature_vehicle(db, profile.id)
    if not decision.permitted:
        raise _capacity_exceeded(decision, get_plan(profile.plan))
    return decision
