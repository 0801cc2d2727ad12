"""
Stripe checkout endpoints: session creation and the success landing.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from covercraft.core.auth_dependency import AuthenticatedUser, get_current_user
from covercraft.core.config import get_site_url
from covercraft.core.dependencies import get_profile_store, get_stripe_provider
from covercraft.schemas.billing import CheckoutSessionResponse
from covercraft.services.billing_service import complete_checkout
from covercraft.services.payment_provider import PaymentProviderError
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"])


def _server_error(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    user: AuthenticatedUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    stripe_provider: StripeProvider = Depends(get_stripe_provider),
):
    """Create a Stripe Checkout session for the subscription price."""
    if not stripe_provider.configured:
        raise _server_error("Stripe is not configured (STRIPE_SECRET_KEY missing)")
    if not stripe_provider.price_id:
        raise _server_error("Stripe is not configured (STRIPE_PRICE_ID missing)")
    site_url = get_site_url()
    if not site_url:
        raise _server_error("Site URL is not configured (URL or SITE_URL missing)")

    profile = store.ensure(user.id, user.email)

    try:
        url = stripe_provider.create_checkout_session(
            user_id=user.id,
            email=user.email,
            customer_id=profile.stripe_customer_id,
            success_url=f"{site_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{site_url}/",
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout session failed: user_id={user.id}, error={e}")
        raise _server_error(e.user_message or str(e))
    except PaymentProviderError as e:
        raise _server_error(str(e))

    return CheckoutSessionResponse(url=url)


def _redirect(site_url: str, **params) -> RedirectResponse:
    return RedirectResponse(
        url=f"{site_url}/?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/success")
def checkout_success(
    request: Request,
    session_id: Optional[str] = None,
    store: ProfileStore = Depends(get_profile_store),
    stripe_provider: StripeProvider = Depends(get_stripe_provider),
):
    """
    Landing page after Stripe Checkout.

    Reconciles the session right away so the user does not wait for the
    webhook, then redirects back to the site with the outcome.
    """
    site_url = get_site_url() or str(request.base_url).rstrip("/")
    if not site_url:
        return PlainTextResponse("Missing SITE_URL/URL", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not stripe_provider.configured:
        return _redirect(site_url, checkout="error", reason="missing_stripe_key")
    if not session_id:
        return _redirect(site_url, checkout="error", reason="missing_session_id")

    try:
        result = complete_checkout(store, stripe_provider, session_id)
    except (stripe.StripeError, PaymentProviderError) as e:
        logger.warning(f"Checkout session lookup failed: session_id={session_id}, error={e}")
        return _redirect(site_url, checkout="error", reason="session_lookup_failed")
    except SQLAlchemyError as e:
        # Payment went through; the webhook will finish the profile update
        store.db.rollback()
        logger.error(f"Checkout reconciliation write failed: session_id={session_id}, error={e}")
        return _redirect(site_url, checkout="success", paid=1)

    if not result.matched:
        return _redirect(site_url, checkout="unmatched")
    return _redirect(site_url, checkout="success", paid=1)
