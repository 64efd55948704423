"""Vehicle listing API routes, scoped to the owner."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.api.deps import (
    check_featured_limit,
    check_vehicle_limit,
    get_current_active_user,
    get_db,
    require_entitlement,
)
from rxautos.billing.access import CapacityDecision
from rxautos.billing.plans import get_plan
from rxautos.models.profile import Profile
from rxautos.models.vehicle import Vehicle
from rxautos.schemas.auth import MessageResponse
from rxautos.schemas.vehicle import VehicleCreate, VehicleListResponse, VehicleResponse, VehicleUpdate
from rxautos.services.entitlement_service import Entitlement
from rxautos.services.vehicle_service import check_photo_limit, get_owned_vehicle

router = APIRouter(prefix="/api/v1/vehicles", tags=["vehicles"])


@router.post(
    "",
    response_model=VehicleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="List a new vehicle",
)
async def create_vehicle(
    body: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
    _entitlement: Entitlement = Depends(require_entitlement),
    _capacity: CapacityDecision = Depends(check_vehicle_limit),  # locks the owner row
) -> VehicleResponse:
    check_photo_limit(body.photos, get_plan(current_user.plan))
    vehicle = Vehicle(owner_id=current_user.id, is_featured=False, **body.model_dump())
    db.add(vehicle)
    await db.flush()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.get(
    "",
    response_model=VehicleListResponse,
    summary="List vehicles owned by the current user",
)
async def list_vehicles(
    status_filter: str | None = Query(None, alias="status"),
    featured: bool | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> VehicleListResponse:
    filters = [Vehicle.owner_id == current_user.id]
    if status_filter is not None:
        filters.append(Vehicle.status == status_filter)
    if featured is not None:
        filters.append(Vehicle.is_featured.is_(featured))

    total = (await db.execute(select(func.count()).select_from(Vehicle).where(*filters))).scalar_one()
    result = await db.execute(
        select(Vehicle).where(*filters).order_by(Vehicle.created_at.desc()).offset(skip).limit(limit)
    )
    return VehicleListResponse(
        items=[VehicleResponse.model_validate(v) for v in result.scalars().all()],
        total=total,
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get a vehicle by ID")
async def get_vehicle(
    vehicle_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> VehicleResponse:
    vehicle = await get_owned_vehicle(db, vehicle_id, current_user.id)
    return VehicleResponse.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleResponse, summary="Update a vehicle")
async def update_vehicle(
    vehicle_id: uuid.UUID,
    body: VehicleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> VehicleResponse:
    """Partially update a vehicle. Only explicitly set fields are changed."""
    vehicle = await get_owned_vehicle(db, vehicle_id, current_user.id)
    update_data = body.model_dump(exclude_unset=True)
    if "photos" in update_data:
        check_photo_limit(update_data["photos"], get_plan(current_user.plan))

    for field, value in update_data.items():
        setattr(vehicle, field, value)

    await db.flush()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}", response_model=MessageResponse, summary="Delete a vehicle")
async def delete_vehicle(
    vehicle_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> MessageResponse:
    vehicle = await get_owned_vehicle(db, vehicle_id, current_user.id)
    await db.delete(vehicle)
    await db.flush()
    return MessageResponse(message="Vehicle deleted")


# ---------------------------------------------------------------------------
# Featured listings
# ---------------------------------------------------------------------------


@router.post("/{vehicle_id}/feature", response_model=VehicleResponse, summary="Feature a vehicle")
async def feature_vehicle(
    vehicle_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
    _entitlement: Entitlement = Depends(require_entitlement),
) -> VehicleResponse:
    """Mark a vehicle as featured. Already-featured vehicles are returned unchanged."""
    vehicle = await get_owned_vehicle(db, vehicle_id, current_user.id)
    if not vehicle.is_featured:
        await check_featured_limit(db, current_user)
        vehicle.is_featured = True
        await db.flush()
        await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}/feature", response_model=VehicleResponse, summary="Unfeature a vehicle")
async def unfeature_vehicle(
    vehicle_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> VehicleResponse:
    vehicle = await get_owned_vehicle(db, vehicle_id, current_user.id)
    if vehicle.is_featured:
        vehicle.is_featured = False
        await db.flush()
        await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)
