"""Pydantic v2 request/response schemas for vehicle endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class VehicleCreate(BaseModel):
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=150)
    model_year: int = Field(..., ge=1900, le=2100)
    price: Decimal = Field(..., ge=0)
    mileage_km: int | None = Field(None, ge=0)
    fuel: str | None = Field(None, max_length=30)
    transmission: str | None = Field(None, max_length=30)
    color: str | None = Field(None, max_length=50)
    description: str | None = None
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, min_length=2, max_length=2)
    photos: list[str] | None = None
    status: str = Field("available", pattern="^(available|sold|inactive)$")


class VehicleUpdate(BaseModel):
    """Partial update. ``is_featured`` changes go through the feature endpoints."""

    brand: str | None = Field(None, min_length=1, max_length=100)
    model: str | None = Field(None, min_length=1, max_length=150)
    model_year: int | None = Field(None, ge=1900, le=2100)
    price: Decimal | None = Field(None, ge=0)
    mileage_km: int | None = Field(None, ge=0)
    fuel: str | None = Field(None, max_length=30)
    transmission: str | None = Field(None, max_length=30)
    color: str | None = Field(None, max_length=50)
    description: str | None = None
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, min_length=2, max_length=2)
    photos: list[str] | None = None
    status: str | None = Field(None, pattern="^(available|sold|inactive)$")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class VehicleResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    brand: str
    model: str
    model_year: int
    price: Decimal
    mileage_km: int | None = None
    fuel: str | None = None
    transmission: str | None = None
    color: str | None = None
    description: str | None = None
    city: str | None = None
    state: str | None = None
    photos: list | None = None
    is_featured: bool
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VehicleListResponse(BaseModel):
    items: list[VehicleResponse]
    total: int
