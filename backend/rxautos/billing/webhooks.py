"""Asaas webhook event handling: mirror payment status and drive plan windows."""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.database import upsert_insert
from rxautos.models.payment import Payment
from rxautos.models.profile import Profile
from rxautos.services.subscription_service import (
    activate_from_payment,
    deactivate_from_payment,
    get_profile_by_billing_customer,
    mark_overdue,
)
from rxautos.utils.dates import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Asaas event -> local payment status
EVENT_STATUS: dict[str, str] = {
    "PAYMENT_CREATED": "PENDING",
    "PAYMENT_RECEIVED": "RECEIVED",
    "PAYMENT_CONFIRMED": "CONFIRMED",
    "PAYMENT_OVERDUE": "OVERDUE",
    "PAYMENT_DELETED": "DELETED",
    "PAYMENT_RESTORED": "PENDING",
    "PAYMENT_REFUNDED": "REFUNDED",
    "PAYMENT_RECEIVED_IN_CASH_UNDONE": "PENDING",
    "PAYMENT_CHARGEBACK_REQUESTED": "CHARGEBACK_REQUESTED",
    "PAYMENT_CHARGEBACK_DISPUTE": "CHARGEBACK_DISPUTE",
    "PAYMENT_AWAITING_CHARGEBACK_REVERSAL": "AWAITING_CHARGEBACK_REVERSAL",
    "PAYMENT_DUNNING_RECEIVED": "DUNNING_RECEIVED",
    "PAYMENT_DUNNING_REQUESTED": "DUNNING_REQUESTED",
}

LOG_ONLY_EVENTS = frozenset({"PAYMENT_BANK_SLIP_VIEWED", "PAYMENT_CHECKOUT_VIEWED"})

# Events that also touch the account's plan window (subscription payments only)
SUBSCRIPTION_EFFECTS = {
    "PAYMENT_RECEIVED": "activate",
    "PAYMENT_CONFIRMED": "activate",
    "PAYMENT_OVERDUE": "overdue",
    "PAYMENT_REFUNDED": "deactivate",
}


def _parse_datetime(value) -> datetime | None:
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(str(value)))
    except ValueError:
        logger.warning("Unparseable webhook timestamp %r", value)
        return None


def _parse_date(value) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Unparseable webhook date %r", value)
        return None


def _parse_amount(value) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning("Unparseable webhook amount %r", value)
        return None


async def resolve_account(db: AsyncSession, payment: dict) -> Profile | None:
    """Find the owning profile: externalReference first, then the Asaas customer id."""
    reference = payment.get("externalReference")
    if reference:
        try:
            profile = await db.get(Profile, uuid.UUID(str(reference)))
        except ValueError:
            logger.debug("externalReference %r is not a profile id", reference)
        else:
            if profile is not None:
                return profile

    customer_id = payment.get("customer")
    if customer_id:
        return await get_profile_by_billing_customer(db, customer_id)
    return None


async def upsert_payment(
    db: AsyncSession, profile: Profile, payment: dict, status: str, event_at: datetime
) -> uuid.UUID | None:
    """Insert or update the payment row keyed on the Asaas payment id.

    The update only applies when ``event_at`` is not older than the last
    applied event. Returns the row id, or None when the event was stale.
    """
    values = {
        "id": uuid.uuid4(),
        "user_id": profile.id,
        "external_id": payment["id"],
        "external_customer_id": payment.get("customer"),
        "external_subscription_id": payment.get("subscription"),
        "external_reference": payment.get("externalReference"),
        "amount": _parse_amount(payment.get("value")),
        "billing_type": payment.get("billingType"),
        "status": status,
        "description": payment.get("description"),
        "due_date": _parse_date(payment.get("dueDate")),
        "payment_date": _parse_date(payment.get("paymentDate") or payment.get("clientPaymentDate")),
        "invoice_url": payment.get("invoiceUrl"),
        "bank_slip_url": payment.get("bankSlipUrl"),
        "last_event_at": event_at,
    }
    stmt = upsert_insert(db, Payment).values(**values)
    updates = {key: stmt.excluded[key] for key in values if key not in ("id", "external_id")}
    updates["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(
        index_elements=[Payment.external_id],
        set_=updates,
        where=or_(
            Payment.last_event_at.is_(None),
            Payment.last_event_at <= stmt.excluded.last_event_at,
        ),
    ).returning(Payment.id)

    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _apply_subscription_effect(
    db: AsyncSession, effect: str, profile: Profile, payment: dict, now: datetime
) -> None:
    payment_id = payment["id"]
    if effect == "activate":
        await activate_from_payment(db, profile, payment_id, payment.get("subscription"), now=now)
    elif effect == "overdue":
        await mark_overdue(db, profile, payment_id, now=now)
    elif effect == "deactivate":
        await deactivate_from_payment(db, profile, payment_id, now=now)


async def dispatch_event(db: AsyncSession, body: dict, now: datetime | None = None) -> str:
    """Apply one webhook delivery. Returns what happened, for logging and tests.

    Outcomes: ``logged``, ``ignored``, ``unresolved``, ``stale``,
    ``applied`` or ``failed``. None of them is an error for the caller:
    Asaas must always get a 200 so it does not retry forever.
    """
    now = now or utcnow()
    event = body["event"]
    payment = body["payment"]
    payment_id = payment.get("id")

    if event in LOG_ONLY_EVENTS:
        logger.info("Asaas event %s for payment %s (no state change)", event, payment_id)
        return "logged"

    status = EVENT_STATUS.get(event)
    if status is None:
        logger.warning("Unhandled Asaas event type: %s (payment %s)", event, payment_id)
        return "ignored"

    if not payment_id:
        logger.warning("Asaas event %s without a payment id", event)
        return "ignored"

    profile = await resolve_account(db, payment)
    if profile is None:
        logger.warning(
            "No profile found for Asaas payment %s (customer=%s, reference=%s)",
            payment_id,
            payment.get("customer"),
            payment.get("externalReference"),
        )
        return "unresolved"

    event_at = _parse_datetime(body.get("dateCreated")) or now

    try:
        async with db.begin_nested():
            row_id = await upsert_payment(db, profile, payment, status, event_at)
    except SQLAlchemyError:
        logger.exception("Failed to store payment %s for event %s", payment_id, event)
        return "failed"

    if row_id is None:
        logger.info("Stale Asaas event %s for payment %s (event at %s), skipped", event, payment_id, event_at)
        return "stale"

    logger.info("Payment %s -> %s (user %s)", payment_id, status, profile.id)

    effect = SUBSCRIPTION_EFFECTS.get(event)
    if effect and payment.get("subscription"):
        try:
            async with db.begin_nested():
                await _apply_subscription_effect(db, effect, profile, payment, now)
        except SQLAlchemyError:
            logger.exception("Failed to %s subscription for payment %s", effect, payment_id)
            return "failed"

    return "applied"
