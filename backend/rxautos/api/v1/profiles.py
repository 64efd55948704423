"""Profile API routes for the authenticated account."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.api.deps import get_current_active_user, get_db
from rxautos.models.profile import Profile
from rxautos.schemas.auth import UserResponse
from rxautos.schemas.profile import ProfileUpdate
from rxautos.utils.documents import only_digits, validate_document, validate_phone

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/me", response_model=UserResponse)
async def get_my_profile(current_user: Profile = Depends(get_current_active_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> UserResponse:
    updates = body.model_dump(exclude_unset=True)

    if updates.get("phone"):
        if not validate_phone(updates["phone"]):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Invalid phone number", "field": "phone"},
            )
        updates["phone"] = only_digits(updates["phone"])

    if updates.get("document"):
        is_valid, _ = validate_document(updates["document"])
        if not is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Invalid CPF/CNPJ", "field": "document"},
            )
        updates["document"] = only_digits(updates["document"])

    for field, value in updates.items():
        setattr(current_user, field, value)

    await db.flush()
    await db.refresh(current_user)
    return UserResponse.model_validate(current_user)
