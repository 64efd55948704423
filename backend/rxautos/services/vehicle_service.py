"""Vehicle helpers shared by the vehicle routes."""

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.plans import PlanConfig
from rxautos.models.vehicle import Vehicle


async def get_owned_vehicle(db: AsyncSession, vehicle_id: uuid.UUID, owner_id: uuid.UUID) -> Vehicle:
    """Return the vehicle, or 404 if it does not exist or belongs to someone else."""
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    vehicle = result.scalar_one_or_none()
    if vehicle is None or vehicle.owner_id != owner_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found",
        )
    return vehicle


def check_photo_limit(photos: list[str] | None, plan: PlanConfig) -> None:
    """Raise 402 when a vehicle carries more photos than the plan allows."""
    count = len(photos or [])
    if count > plan.max_photos_per_vehicle.value:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": f"The {plan.display_name} plan allows {plan.max_photos_per_vehicle.value} photos per vehicle",
                "limit": plan.max_photos_per_vehicle.value,
                "current": count,
                "plan": plan.name,
                "upgrade_url": "/api/v1/billing/plans",
            },
        )
