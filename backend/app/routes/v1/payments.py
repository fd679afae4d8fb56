# backend/app/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /webhooks/stripe → Handle Stripe webhooks

The webhook has no authentication; the Stripe signature is the credential.
Verified events always get a 200 so Stripe does not retry events we have
already recorded; reconciliation is idempotent either way.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.dependencies import get_payment_gateway, get_payment_reconciler
from ...core.exceptions import DomainException
from ...integrations.payment_gateway import PaymentGateway, WebhookSignatureError
from ...schemas.appointment import WebhookAckResponse
from ...services.payment_reconciler import PaymentReconciler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/webhooks/stripe", response_model=WebhookAckResponse)
async def handle_stripe_webhook(
    request: Request,
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> WebhookAckResponse:
    """
    Handle Stripe webhook events for appointment payments.

    Returns:
        Acknowledgement (200 for every verified event, 400 for bad signatures)
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""

    try:
        event = payment_gateway.construct_event(payload, sig_header)
    except WebhookSignatureError as e:
        logger.warning(f"Webhook signature verification failed: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event.get("type", "unknown")
    logger.info(f"Webhook verified for event: {event_type}")

    try:
        result = await asyncio.to_thread(reconciler.handle_gateway_event, event)
    except DomainException as e:
        # Acknowledge anyway; the client confirmation path converges on the same state
        logger.error(f"Webhook processing failed for {event_type}: {e.message}")
        return WebhookAckResponse(status="error", event_type=event_type)

    if result is None:
        return WebhookAckResponse(status="ignored", event_type=event_type)

    logger.info(f"Webhook processed: {event_type} -> {result.outcome.value}")
    return WebhookAckResponse(
        status="processed", event_type=event_type, outcome=result.outcome.value
    )


__all__ = ["router"]
