"""Pydantic v2 request/response schemas for billing endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rxautos.utils.dates import to_naive_utc

# --- Request schemas ---


class SubscriptionCreateRequest(BaseModel):
    plan: str  # basico, profissional, empresarial, ilimitado (or premium / premium_plus)
    billing_cycle: str = Field("MONTHLY", pattern="^(WEEKLY|BIWEEKLY|MONTHLY|QUARTERLY|SEMIANNUALLY|YEARLY)$")
    billing_type: str = Field("PIX", pattern="^(PIX|BOLETO|CREDIT_CARD|UNDEFINED)$")


class SubscriptionStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(active|pending_payment|blocked|cancelled|trial|promotional_active)$")
    payment_id: str | None = None


class CustomerCreateRequest(BaseModel):
    """Asaas customer data; document and phone are validated before any provider call."""

    name: str = Field(..., min_length=1, max_length=255)
    cpf_cnpj: str
    email: str | None = None
    mobile_phone: str | None = None


class PaymentCreateRequest(BaseModel):
    value: Decimal = Field(..., gt=0)
    due_date: date
    billing_type: str = Field("PIX", pattern="^(PIX|BOLETO|CREDIT_CARD|UNDEFINED)$")
    description: str | None = Field(None, max_length=500)


class PromotionApplyRequest(BaseModel):
    document: str | None = None


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    free_days: int = Field(30, ge=1, le=365)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    applies_to_new_users: bool = True
    requires_valid_document: bool = False
    max_uses: int | None = Field(None, ge=1)  # None = uncapped

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_window(self) -> "CampaignCreate":
        """If both dates are provided, end_date must be after start_date."""
        if self.start_date is not None and self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CampaignStatusUpdate(BaseModel):
    is_active: bool


# --- Response schemas ---


class PlanResponse(BaseModel):
    name: str
    display_name: str
    price_monthly: Decimal
    max_vehicles: int | None  # None = unlimited
    max_featured_vehicles: int
    max_photos_per_vehicle: int
    storage_limit_mb: int
    api_calls_per_month: int | None
    features: list[str]


class PlansListResponse(BaseModel):
    version: str
    plans: list[PlanResponse]


class UsageEntry(BaseModel):
    current: int
    max: int | None
    percentage: float


class UsageResponse(BaseModel):
    plan: str
    display_name: str
    vehicles: UsageEntry
    featured_vehicles: UsageEntry


class EntitlementResponse(BaseModel):
    permitted: bool
    code: str
    reason: str
    warning: bool = False
    days_remaining: int | None = None
    campaign_name: str | None = None
    subscription_id: uuid.UUID | None = None


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    plan_type: str
    plan_value: Decimal
    billing_cycle: str
    status: str
    start_date: datetime
    end_date: datetime | None = None
    grace_period_ends_at: datetime | None = None
    last_payment_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentSubscriptionResponse(BaseModel):
    """Subscription row (if any) plus the entitlement it results in."""

    subscription: SubscriptionResponse | None
    entitlement: EntitlementResponse
    plan: PlanResponse


class TrialStatusResponse(BaseModel):
    is_in_trial: bool
    days_remaining: int
    start_date: datetime | None = None
    end_date: datetime | None = None
    plan_type: str | None = None
    converted_to_paid: bool = False


class CustomerResponse(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None
    cpf_cnpj: str | None = None
    formatted_document: str | None = None


class PaymentResponse(BaseModel):
    id: str
    status: str
    value: Decimal | None = None
    billing_type: str | None = None
    due_date: date | None = None
    invoice_url: str | None = None
    bank_slip_url: str | None = None


class PixQrCodeResponse(BaseModel):
    encoded_image: str
    payload: str
    expiration_date: str | None = None


class CampaignResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    free_days: int
    is_active: bool
    applies_to_new_users: bool
    start_date: datetime | None = None
    end_date: datetime | None = None
    requires_valid_document: bool
    max_uses: int | None = None
    current_uses: int

    model_config = ConfigDict(from_attributes=True)


class PromotionApplyResponse(BaseModel):
    success: bool
    message: str
    promotional_end_date: datetime | None = None


class BillingCycleResponse(BaseModel):
    total_expired: int
    processed_expired: int
    total_blocked: int
    processed_blocked: int
    closed_campaigns: int
    errors: list[str]


class BillingJobsStatusResponse(BaseModel):
    expired_subscriptions: int
    blockable_subscriptions: int
    checked_at: datetime
