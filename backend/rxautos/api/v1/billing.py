"""Billing API endpoints: plans, usage, entitlement, subscriptions, Asaas customers and payments."""

import hmac
import logging
import uuid
from dataclasses import asdict
from datetime import date

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.api.deps import get_current_active_user, get_current_admin, get_db
from rxautos.billing import asaas_client
from rxautos.billing.asaas_client import AsaasError
from rxautos.billing.jobs import run_billing_cycle
from rxautos.billing.plans import PLAN_CATALOG_VERSION, PLANS, PlanConfig, VALID_PLAN_NAMES, get_plan
from rxautos.billing.usage import UsageUnavailableError, build_usage_report, get_usage_snapshot
from rxautos.config import settings
from rxautos.models.profile import Profile
from rxautos.models.promotional_campaign import PromotionalCampaign
from rxautos.models.subscription import Subscription
from rxautos.schemas.billing import (
    BillingCycleResponse,
    BillingJobsStatusResponse,
    CampaignCreate,
    CampaignResponse,
    CampaignStatusUpdate,
    CurrentSubscriptionResponse,
    CustomerCreateRequest,
    CustomerResponse,
    EntitlementResponse,
    PaymentCreateRequest,
    PaymentResponse,
    PixQrCodeResponse,
    PlanResponse,
    PlansListResponse,
    PromotionApplyRequest,
    PromotionApplyResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    SubscriptionStatusUpdate,
    TrialStatusResponse,
    UsageResponse,
)
from rxautos.services.entitlement_service import evaluate_entitlement
from rxautos.services.promotion_service import (
    apply_promotion_to_user,
    create_campaign,
    get_active_campaign,
    list_campaigns,
    set_campaign_active,
)
from rxautos.services.subscription_service import (
    create_subscription,
    get_blockable_subscriptions,
    get_current_subscription,
    get_expired_subscriptions,
    update_subscription_status,
)
from rxautos.services.trial_service import get_trial_status
from rxautos.utils.dates import utcnow
from rxautos.utils.documents import format_document, only_digits, validate_document, validate_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])

_cron_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _plan_response(plan: PlanConfig) -> PlanResponse:
    return PlanResponse(
        name=plan.name,
        display_name=plan.display_name,
        price_monthly=plan.price_monthly,
        max_vehicles=plan.max_vehicles.max_allowed,
        max_featured_vehicles=plan.max_featured_vehicles.value,
        max_photos_per_vehicle=plan.max_photos_per_vehicle.value,
        storage_limit_mb=plan.storage_limit_mb.value,
        api_calls_per_month=plan.api_calls_per_month.max_allowed,
        features=sorted(plan.features),
    )


def _provider_error(e: Exception) -> HTTPException:
    if isinstance(e, AsaasError):
        detail = {"message": e.message, "provider_status": e.status_code}
    else:
        detail = {"message": "Billing provider unavailable", "provider_status": None}
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


def _require_customer(user: Profile) -> str:
    if not user.billing_customer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No billing customer registered for this account",
        )
    return user.billing_customer_id


def _payment_response(payment: dict) -> PaymentResponse:
    return PaymentResponse(
        id=payment["id"],
        status=payment.get("status", "PENDING"),
        value=payment.get("value"),
        billing_type=payment.get("billingType"),
        due_date=payment.get("dueDate"),
        invoice_url=payment.get("invoiceUrl"),
        bank_slip_url=payment.get("bankSlipUrl"),
    )


async def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(_cron_bearer),
) -> None:
    """Bearer <cron secret>. Always rejects when no secret is configured."""
    if (
        not settings.cron_secret_key
        or credentials is None
        or not hmac.compare_digest(credentials.credentials, settings.cron_secret_key)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ---------------------------------------------------------------------------
# Plans, usage, entitlement
# ---------------------------------------------------------------------------


@router.get("/plans", response_model=PlansListResponse)
async def list_plans() -> PlansListResponse:
    """List available plans (public, no auth required)."""
    return PlansListResponse(
        version=PLAN_CATALOG_VERSION,
        plans=[_plan_response(p) for p in PLANS.values()],
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> UsageResponse:
    try:
        snapshot = await get_usage_snapshot(db, current_user.id)
    except UsageUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage is temporarily unavailable",
        ) from e
    return UsageResponse(**build_usage_report(get_plan(current_user.plan), snapshot))


@router.get("/entitlement", response_model=EntitlementResponse)
async def get_entitlement(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> EntitlementResponse:
    entitlement = await evaluate_entitlement(db, current_user.id)
    return EntitlementResponse(**asdict(entitlement))


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


@router.get("/subscription", response_model=CurrentSubscriptionResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> CurrentSubscriptionResponse:
    subscription = await get_current_subscription(db, current_user.id)
    entitlement = await evaluate_entitlement(db, current_user.id)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        entitlement=EntitlementResponse(**asdict(entitlement)),
        plan=_plan_response(get_plan(current_user.plan)),
    )


@router.post("/subscription", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(
    body: SubscriptionCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> SubscriptionResponse:
    """Start a paid subscription; the Asaas subscription is created when a customer exists."""
    if body.plan not in VALID_PLAN_NAMES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid plan. Choose one of: {', '.join(sorted(PLANS))}.",
        )

    subscription = await create_subscription(db, current_user.id, body.plan, billing_cycle=body.billing_cycle)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Account is in its free trial; a paid subscription can start after it ends.",
        )

    if current_user.billing_customer_id:
        try:
            provider_sub = await asaas_client.create_subscription(
                customer_id=current_user.billing_customer_id,
                value=subscription.plan_value,
                next_due_date=date.today(),
                cycle=body.billing_cycle,
                billing_type=body.billing_type,
                description=f"{get_plan(body.plan).display_name} plan",
                external_reference=str(current_user.id),
            )
        except (AsaasError, httpx.HTTPError) as e:
            raise _provider_error(e) from e
        current_user.billing_subscription_id = provider_sub.get("id")
        await db.flush()

    await db.refresh(subscription)
    return SubscriptionResponse.model_validate(subscription)


@router.put("/subscriptions/{subscription_id}/status", response_model=SubscriptionResponse)
async def set_subscription_status(
    subscription_id: uuid.UUID,
    body: SubscriptionStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(get_current_admin),
) -> SubscriptionResponse:
    subscription = await db.get(Subscription, subscription_id)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    await update_subscription_status(db, subscription, body.status, body.payment_id)
    await db.refresh(subscription)
    return SubscriptionResponse.model_validate(subscription)


@router.get("/trial", response_model=TrialStatusResponse)
async def get_trial(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> TrialStatusResponse:
    trial_status = await get_trial_status(db, current_user.id)
    trial = trial_status.trial
    return TrialStatusResponse(
        is_in_trial=trial_status.is_in_trial,
        days_remaining=trial_status.days_remaining,
        start_date=trial.start_date if trial else None,
        end_date=trial.end_date if trial else None,
        plan_type=trial.plan_type if trial else None,
        converted_to_paid=trial.converted_to_paid if trial else False,
    )


# ---------------------------------------------------------------------------
# Asaas customers and payments
# ---------------------------------------------------------------------------


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def register_customer(
    body: CustomerCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> CustomerResponse:
    """Find or create the Asaas customer for this account."""
    is_valid, _ = validate_document(body.cpf_cnpj)
    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid CPF/CNPJ", "field": "cpf_cnpj"},
        )
    if body.mobile_phone and not validate_phone(body.mobile_phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid phone number", "field": "mobile_phone"},
        )

    document = only_digits(body.cpf_cnpj)
    try:
        customer = await asaas_client.find_or_create_customer(
            name=body.name,
            cpf_cnpj=document,
            email=body.email or current_user.email,
            mobile_phone=only_digits(body.mobile_phone) if body.mobile_phone else None,
            external_reference=str(current_user.id),
        )
    except (AsaasError, httpx.HTTPError) as e:
        raise _provider_error(e) from e

    current_user.billing_customer_id = customer["id"]
    current_user.document = document
    await db.flush()
    logger.info("Linked Asaas customer %s to user %s", customer["id"], current_user.id)

    return CustomerResponse(
        id=customer["id"],
        name=customer.get("name"),
        email=customer.get("email"),
        cpf_cnpj=customer.get("cpfCnpj"),
        formatted_document=format_document(customer.get("cpfCnpj") or document),
    )


@router.get("/customers/me", response_model=CustomerResponse)
async def get_my_customer(current_user: Profile = Depends(get_current_active_user)) -> CustomerResponse:
    customer_id = _require_customer(current_user)
    try:
        customer = await asaas_client.get_customer(customer_id)
    except (AsaasError, httpx.HTTPError) as e:
        raise _provider_error(e) from e
    return CustomerResponse(
        id=customer["id"],
        name=customer.get("name"),
        email=customer.get("email"),
        cpf_cnpj=customer.get("cpfCnpj"),
        formatted_document=format_document(customer["cpfCnpj"]) if customer.get("cpfCnpj") else None,
    )


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    body: PaymentCreateRequest,
    current_user: Profile = Depends(get_current_active_user),
) -> PaymentResponse:
    customer_id = _require_customer(current_user)
    try:
        payment = await asaas_client.create_payment(
            customer_id=customer_id,
            value=body.value,
            due_date=body.due_date,
            billing_type=body.billing_type,
            description=body.description,
            external_reference=str(current_user.id),
        )
    except (AsaasError, httpx.HTTPError) as e:
        raise _provider_error(e) from e
    return _payment_response(payment)


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(current_user: Profile = Depends(get_current_active_user)) -> list[PaymentResponse]:
    customer_id = _require_customer(current_user)
    try:
        payments = await asaas_client.list_customer_payments(customer_id)
    except (AsaasError, httpx.HTTPError) as e:
        raise _provider_error(e) from e
    return [_payment_response(p) for p in payments]


@router.get("/payments/{payment_id}/pix-qr-code", response_model=PixQrCodeResponse)
async def get_pix_qr_code(
    payment_id: str,
    current_user: Profile = Depends(get_current_active_user),
) -> PixQrCodeResponse:
    customer_id = _require_customer(current_user)
    try:
        payment = await asaas_client.get_payment(payment_id)
        if payment.get("customer") != customer_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
        qr = await asaas_client.get_pix_qr_code(payment_id)
    except (AsaasError, httpx.HTTPError) as e:
        raise _provider_error(e) from e
    return PixQrCodeResponse(
        encoded_image=qr["encodedImage"],
        payload=qr["payload"],
        expiration_date=qr.get("expirationDate"),
    )


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------


@router.get("/promotions/active", response_model=CampaignResponse | None)
async def active_promotion(db: AsyncSession = Depends(get_db)) -> CampaignResponse | None:
    """The campaign new users can enroll in right now, if any (public)."""
    campaign = await get_active_campaign(db)
    return CampaignResponse.model_validate(campaign) if campaign else None


@router.post("/promotions/apply", response_model=PromotionApplyResponse)
async def apply_promotion(
    body: PromotionApplyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user),
) -> PromotionApplyResponse:
    result = await apply_promotion_to_user(db, current_user, body.document)
    return PromotionApplyResponse(**asdict(result))


@router.get("/promotions", response_model=list[CampaignResponse])
async def list_promotions(
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(get_current_admin),
) -> list[CampaignResponse]:
    return [CampaignResponse.model_validate(c) for c in await list_campaigns(db)]


@router.post("/promotions", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    body: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(get_current_admin),
) -> CampaignResponse:
    campaign = await create_campaign(db, **body.model_dump())
    return CampaignResponse.model_validate(campaign)


@router.put("/promotions/{campaign_id}/status", response_model=CampaignResponse)
async def set_promotion_status(
    campaign_id: uuid.UUID,
    body: CampaignStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(get_current_admin),
) -> CampaignResponse:
    campaign = await db.get(PromotionalCampaign, campaign_id)
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    campaign = await set_campaign_active(db, campaign, body.is_active)
    return CampaignResponse.model_validate(campaign)


# ---------------------------------------------------------------------------
# Billing jobs (cron)
# ---------------------------------------------------------------------------


@router.post("/jobs/run", response_model=BillingCycleResponse, dependencies=[Depends(verify_cron_secret)])
async def run_jobs(db: AsyncSession = Depends(get_db)) -> BillingCycleResponse:
    result = await run_billing_cycle(db)
    return BillingCycleResponse(**asdict(result))


@router.get("/jobs/run", response_model=BillingJobsStatusResponse, dependencies=[Depends(verify_cron_secret)])
async def jobs_status(db: AsyncSession = Depends(get_db)) -> BillingJobsStatusResponse:
    now = utcnow()
    return BillingJobsStatusResponse(
        expired_subscriptions=len(await get_expired_subscriptions(db, now)),
        blockable_subscriptions=len(await get_blockable_subscriptions(db, now)),
        checked_at=now,
    )
