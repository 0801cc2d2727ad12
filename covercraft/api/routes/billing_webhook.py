"""
Payment provider webhooks (Stripe, Lemon Squeezy).

Both endpoints verify the signature against the raw body before anything
touches the database, and answer 200 for every verified event, matched or not.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from covercraft.core.dependencies import get_lemon_provider, get_profile_store, get_stripe_provider
from covercraft.core.logging_config import sanitize_log_data
from covercraft.services.billing_service import process_webhook_event
from covercraft.services.lemon_service import LemonSqueezyProvider
from covercraft.services.payment_provider import (
    PaymentProvider,
    ProviderNotConfiguredError,
    WebhookVerificationError,
)
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Billing Webhook"])


def handle_webhook(
    provider: PaymentProvider,
    store: ProfileStore,
    payload: bytes,
    headers,
) -> Dict[str, Any]:
    """
    Verify and reconcile one webhook delivery.

    Raises:
        HTTPException: 500 not configured, 400 bad signature/payload,
            500 processing failure (the provider retries)
    """
    try:
        event = provider.verify_webhook(payload, headers)
    except ProviderNotConfiguredError as e:
        logger.error(f"{provider.name} webhook received but provider is not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except WebhookVerificationError as e:
        logger.warning(f"{provider.name} webhook rejected: {e}; headers={sanitize_log_data(dict(headers))}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        return process_webhook_event(store, provider, event)
    except Exception:
        store.db.rollback()
        logger.exception(f"{provider.name} webhook processing failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    store: ProfileStore = Depends(get_profile_store),
    provider: StripeProvider = Depends(get_stripe_provider),
):
    payload = await request.body()
    return handle_webhook(provider, store, payload, request.headers)


@router.post("/lemon/webhook")
async def lemon_webhook(
    request: Request,
    store: ProfileStore = Depends(get_profile_store),
    provider: LemonSqueezyProvider = Depends(get_lemon_provider),
):
    payload = await request.body()
    return handle_webhook(provider, store, payload, request.headers)
