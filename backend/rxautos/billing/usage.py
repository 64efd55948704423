"""Usage counting: how many vehicles (and featured vehicles) an owner has."""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.plans import Limit, PlanConfig
from rxautos.models.vehicle import Vehicle

logger = logging.getLogger(__name__)


class UsageUnavailableError(Exception):
    """The usage count could not be read. Callers must not assume zero."""

    def __init__(self, owner_id: uuid.UUID, resource: str):
        self.owner_id = owner_id
        self.resource = resource
        super().__init__(f"Could not count {resource} for owner {owner_id}")


@dataclass(frozen=True)
class UsageSnapshot:
    vehicles: int
    featured_vehicles: int


async def _count(db: AsyncSession, owner_id: uuid.UUID, resource: str, *criteria) -> int:
    try:
        result = await db.execute(
            select(func.count()).select_from(Vehicle).where(Vehicle.owner_id == owner_id, *criteria)
        )
        return result.scalar_one()
    except SQLAlchemyError as exc:
        logger.warning("Usage count failed for %s (owner=%s): %s", resource, owner_id, exc)
        raise UsageUnavailableError(owner_id, resource) from exc


async def count_vehicles(db: AsyncSession, owner_id: uuid.UUID) -> int:
    return await _count(db, owner_id, "vehicles")


async def count_featured_vehicles(db: AsyncSession, owner_id: uuid.UUID) -> int:
    return await _count(db, owner_id, "featured_vehicles", Vehicle.is_featured.is_(True))


async def get_usage_snapshot(db: AsyncSession, owner_id: uuid.UUID) -> UsageSnapshot:
    """Both counts for one owner. Raises UsageUnavailableError if either read fails."""
    return UsageSnapshot(
        vehicles=await count_vehicles(db, owner_id),
        featured_vehicles=await count_featured_vehicles(db, owner_id),
    )


def _usage_entry(current: int, limit: Limit) -> dict:
    max_allowed = limit.max_allowed
    if max_allowed is None:
        percentage = 0.0
    elif max_allowed == 0:
        percentage = 100.0
    else:
        percentage = round(min(current / max_allowed * 100, 100.0), 1)
    return {"current": current, "max": max_allowed, "percentage": percentage}


def build_usage_report(plan: PlanConfig, snapshot: UsageSnapshot) -> dict:
    """Display figures per resource. ``max`` is None for unlimited resources."""
    return {
        "plan": plan.name,
        "display_name": plan.display_name,
        "vehicles": _usage_entry(snapshot.vehicles, plan.max_vehicles),
        "featured_vehicles": _usage_entry(snapshot.featured_vehicles, plan.max_featured_vehicles),
    }
