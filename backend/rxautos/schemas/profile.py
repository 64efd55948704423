"""Pydantic v2 schemas for profile endpoints."""

from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    """Partial profile update. Plan and billing fields are not user-editable."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=20)
    document: str | None = Field(None, max_length=18)
    account_type: str | None = Field(None, pattern="^(individual|agency)$")
