"""Asaas webhook endpoint: receives payment lifecycle notifications."""

import hmac
import json
import logging

from fastapi import APIRouter, HTTPException, Request, status

from rxautos.billing.webhooks import dispatch_event
from rxautos.config import settings
from rxautos.database import async_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/asaas")
async def asaas_webhook(request: Request) -> dict[str, bool]:
    """Receive and process Asaas webhook events."""
    # 1. Shared-secret check (only when a token is configured)
    if settings.asaas_webhook_token:
        received = request.headers.get("asaas-access-token", "")
        if not hmac.compare_digest(received, settings.asaas_webhook_token):
            logger.warning("Asaas webhook rejected: bad access token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook token",
            )

    # 2. Validate shape before touching the database
    try:
        body = json.loads(await request.body())
    except ValueError as e:
        logger.warning("Invalid Asaas webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e

    if not isinstance(body, dict) or not body.get("event") or not isinstance(body.get("payment"), dict):
        logger.warning("Asaas webhook without event/payment")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook: event and payment are required",
        )

    logger.info("Processing Asaas event: %s (payment=%s)", body["event"], body["payment"].get("id"))

    # 3. Own DB session (webhook has no auth context)
    async with async_session_factory() as db:
        try:
            outcome = await dispatch_event(db, body)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.exception("Error processing Asaas event %s", body["event"])
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            ) from e

    logger.debug("Asaas event %s outcome: %s", body["event"], outcome)
    return {"received": True}
