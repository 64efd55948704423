"""Capacity checks: may this owner add (or feature) another vehicle?"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.plans import Limit, PlanConfig, get_plan
from rxautos.billing.usage import UsageUnavailableError, count_featured_vehicles, count_vehicles
from rxautos.models.profile import Profile

logger = logging.getLogger(__name__)

RESOURCE_LABELS = {
    "vehicles": "vehicles",
    "featured_vehicles": "featured vehicles",
}


class AccountNotFoundError(Exception):
    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


@dataclass(frozen=True)
class CapacityDecision:
    """Outcome of a capacity check, shaped for display.

    ``max_allowed`` is None for unlimited resources; ``current_count`` is
    None when usage could not be read.
    """

    permitted: bool
    reason: str
    current_count: int | None
    max_allowed: int | None


def evaluate_capacity(limit: Limit, current_count: int | None, plan: PlanConfig, resource: str) -> CapacityDecision:
    """Pure rule: unlimited permits; otherwise permit iff current < limit."""
    label = RESOURCE_LABELS.get(resource, resource)
    max_allowed = limit.max_allowed

    if max_allowed is None:
        return CapacityDecision(
            permitted=True,
            reason=f"Unlimited {label} on the {plan.display_name} plan",
            current_count=current_count,
            max_allowed=None,
        )

    if current_count is None:
        return CapacityDecision(
            permitted=False,
            reason=f"Usage unavailable: could not count your {label}, try again later",
            current_count=None,
            max_allowed=max_allowed,
        )

    if limit.allows(current_count):
        return CapacityDecision(
            permitted=True,
            reason=f"{current_count} of {max_allowed} {label} used",
            current_count=current_count,
            max_allowed=max_allowed,
        )

    return CapacityDecision(
        permitted=False,
        reason=f"Limit of {max_allowed} {label} reached for the {plan.display_name} plan",
        current_count=current_count,
        max_allowed=max_allowed,
    )


async def _load_plan(db: AsyncSession, owner_id: uuid.UUID) -> PlanConfig:
    profile = await db.get(Profile, owner_id)
    if profile is None:
        raise AccountNotFoundError(owner_id)
    return get_plan(profile.plan)


async def can_add_vehicle(db: AsyncSession, owner_id: uuid.UUID) -> CapacityDecision:
    plan = await _load_plan(db, owner_id)
    if plan.max_vehicles.max_allowed is None:
        return evaluate_capacity(plan.max_vehicles, None, plan, "vehicles")
    try:
        current = await count_vehicles(db, owner_id)
    except UsageUnavailableError:
        current = None
    return evaluate_capacity(plan.max_vehicles, current, plan, "vehicles")


async def can_feature_vehicle(db: AsyncSession, owner_id: uuid.UUID) -> CapacityDecision:
    plan = await _load_plan(db, owner_id)
    try:
        current = await count_featured_vehicles(db, owner_id)
    except UsageUnavailableError:
        current = None
    return evaluate_capacity(plan.max_featured_vehicles, current, plan, "featured_vehicles")
