"""Async Asaas API wrapper (v3 REST API over httpx)."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

import httpx

from rxautos.config import settings

logger = logging.getLogger(__name__)


class AsaasError(Exception):
    """Asaas answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Asaas API error {status_code}: {message}")


def get_asaas_client() -> httpx.AsyncClient:
    """Create an AsyncClient bound to the Asaas base URL with the API key header."""
    return httpx.AsyncClient(
        base_url=settings.asaas_base_url,
        headers={
            "access_token": settings.asaas_api_key,
            "Content-Type": "application/json",
            "User-Agent": f"{settings.app_name}/{settings.app_version}",
        },
        timeout=settings.asaas_timeout_seconds,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        errors = []
    if errors and errors[0].get("description"):
        return errors[0]["description"]
    return f"Asaas API error: {response.status_code}"


async def _request(method: str, path: str, **kwargs: Any) -> dict:
    async with get_asaas_client() as client:
        response = await client.request(method, path, **kwargs)
    if response.is_error:
        message = _error_message(response)
        logger.warning("Asaas %s %s failed with %s: %s", method, path, response.status_code, message)
        raise AsaasError(response.status_code, message)
    return response.json()


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _payload(**fields: Any) -> dict:
    """Drop None values; Asaas rejects explicit nulls on several fields."""
    return {key: _json_value(value) for key, value in fields.items() if value is not None}


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


async def create_customer(
    name: str,
    cpf_cnpj: str,
    email: str | None = None,
    mobile_phone: str | None = None,
    external_reference: str | None = None,
) -> dict:
    logger.info("Creating Asaas customer for %s", external_reference or email)
    customer = await _request(
        "POST",
        "/customers",
        json=_payload(
            name=name,
            cpfCnpj=cpf_cnpj,
            email=email,
            mobilePhone=mobile_phone,
            externalReference=external_reference,
        ),
    )
    logger.info("Created Asaas customer %s", customer.get("id"))
    return customer


async def get_customer(customer_id: str) -> dict:
    return await _request("GET", f"/customers/{customer_id}")


async def find_customer_by_document(cpf_cnpj: str) -> dict | None:
    result = await _request("GET", "/customers", params={"cpfCnpj": cpf_cnpj})
    customers = result.get("data") or []
    return customers[0] if customers else None


async def find_or_create_customer(
    name: str,
    cpf_cnpj: str,
    email: str | None = None,
    mobile_phone: str | None = None,
    external_reference: str | None = None,
) -> dict:
    """Reuse the customer registered for this CPF/CNPJ, creating one if none exists."""
    existing = await find_customer_by_document(cpf_cnpj)
    if existing is not None:
        logger.info("Reusing Asaas customer %s", existing.get("id"))
        return existing
    return await create_customer(name, cpf_cnpj, email, mobile_phone, external_reference)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


async def create_payment(
    customer_id: str,
    value: Decimal,
    due_date: date,
    billing_type: str = "PIX",
    description: str | None = None,
    external_reference: str | None = None,
) -> dict:
    logger.info("Creating %s payment of %s for customer %s", billing_type, value, customer_id)
    return await _request(
        "POST",
        "/payments",
        json=_payload(
            customer=customer_id,
            billingType=billing_type,
            value=value,
            dueDate=due_date,
            description=description,
            externalReference=external_reference,
        ),
    )


async def get_payment(payment_id: str) -> dict:
    return await _request("GET", f"/payments/{payment_id}")


async def list_customer_payments(customer_id: str, limit: int = 20, offset: int = 0) -> list[dict]:
    result = await _request(
        "GET", "/payments", params={"customer": customer_id, "limit": limit, "offset": offset}
    )
    return result.get("data") or []


async def get_pix_qr_code(payment_id: str) -> dict:
    """``{encodedImage, payload, expirationDate}`` for a PIX payment."""
    return await _request("GET", f"/payments/{payment_id}/pixQrCode")


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


async def create_subscription(
    customer_id: str,
    value: Decimal,
    next_due_date: date,
    cycle: str = "MONTHLY",
    billing_type: str = "PIX",
    description: str | None = None,
    external_reference: str | None = None,
) -> dict:
    logger.info("Creating %s Asaas subscription for customer %s", cycle, customer_id)
    return await _request(
        "POST",
        "/subscriptions",
        json=_payload(
            customer=customer_id,
            billingType=billing_type,
            value=value,
            nextDueDate=next_due_date,
            cycle=cycle,
            description=description,
            externalReference=external_reference,
        ),
    )


async def get_subscription(subscription_id: str) -> dict:
    return await _request("GET", f"/subscriptions/{subscription_id}")


async def delete_subscription(subscription_id: str) -> dict:
    logger.info("Deleting Asaas subscription %s", subscription_id)
    return await _request("DELETE", f"/subscriptions/{subscription_id}")
