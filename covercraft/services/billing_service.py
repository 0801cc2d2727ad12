"""
Subscription reconciler.

Applies provider-neutral SubscriptionSignals to profiles. All three channels
(webhooks, the pull on profile reads, and the checkout success landing) end
up in apply_signal(), so they share one mapping and one resolution order.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from covercraft.db.models.profile import Profile
from covercraft.services.payment_provider import (
    IgnoredEvent,
    PaymentProvider,
    SubscriptionSignal,
    map_subscription_state,
)
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of applying one signal."""
    matched: bool
    profile: Optional[Profile] = None
    matched_by: Optional[str] = None


def resolve_profile(store: ProfileStore, signal: SubscriptionSignal) -> Tuple[Optional[Profile], Optional[str]]:
    """
    Find the profile a signal belongs to.

    Order: explicit reference id (row created if missing), email
    (case-insensitive), Stripe customer id, Stripe subscription id.

    Returns:
        (profile, matched_by) or (None, None)
    """
    if signal.user_id:
        return store.ensure(signal.user_id, signal.email), "reference"

    profile = store.find_by_email(signal.email)
    if profile:
        return profile, "email"

    profile = store.find_by_customer_id(signal.customer_id)
    if profile:
        return profile, "customer"

    profile = store.find_by_subscription_id(signal.subscription_id)
    if profile:
        return profile, "subscription"

    return None, None


def entitlement_values(profile: Profile, signal: SubscriptionSignal) -> Dict[str, Any]:
    """Column values a signal writes onto a profile."""
    values: Dict[str, Any] = {}

    if signal.customer_id:
        values["stripe_customer_id"] = signal.customer_id
    if signal.clear_subscription:
        values["stripe_subscription_id"] = None
    elif signal.subscription_id:
        values["stripe_subscription_id"] = signal.subscription_id
    if signal.email and not profile.email:
        values["email"] = signal.email

    # No status: linkage-only signal (checkout without a subscription)
    if signal.status is None:
        return values

    period_end = signal.period_end
    plan_id = signal.plan_id
    if signal.partial:
        period_end = period_end or profile.current_period_end
        plan_id = plan_id or profile.plan_id

    state = map_subscription_state(signal.status, period_end)
    values.update(
        is_pro=state.is_pro,
        subscription_status=state.subscription_status,
        current_period_end=state.current_period_end,
        plan_id=plan_id,
    )
    return values


def apply_signal(store: ProfileStore, signal: SubscriptionSignal) -> ReconcileResult:
    """
    Apply a signal to the matching profile.

    An unmatched signal is a no-op, never an error. Database errors propagate
    so webhook callers answer 500 and the provider retries.
    """
    profile, matched_by = resolve_profile(store, signal)
    if profile is None:
        logger.info(
            f"Subscription signal unmatched: provider={signal.provider}, event={signal.event_type}, "
            f"customer_id={signal.customer_id}, subscription_id={signal.subscription_id}"
        )
        return ReconcileResult(matched=False)

    profile = store.update(profile, entitlement_values(profile, signal))
    logger.info(
        f"Subscription reconciled: user_id={profile.id}, provider={signal.provider}, "
        f"event={signal.event_type}, matched_by={matched_by}, status={profile.subscription_status}, "
        f"is_pro={profile.is_pro}"
    )
    return ReconcileResult(matched=True, profile=profile, matched_by=matched_by)


def process_webhook_event(store: ProfileStore, provider: PaymentProvider, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a verified webhook event and apply it.

    Returns:
        Response body for the provider
    """
    parsed = provider.parse_event(event)
    if isinstance(parsed, IgnoredEvent):
        logger.info(f"Webhook event ignored: provider={provider.name}, event={parsed.event_type}, reason={parsed.reason}")
        body: Dict[str, Any] = {"received": True, "ignored": True}
        if parsed.reason:
            body["reason"] = parsed.reason
        return body

    result = apply_signal(store, parsed)
    return {"received": True, "matched": result.matched}


def sync_profile_subscription(store: ProfileStore, profile: Profile, stripe_provider: Optional[StripeProvider]) -> Profile:
    """
    Pull the caller's subscription from Stripe and apply it.

    Best effort: any failure is logged and the stored profile is returned.
    """
    if stripe_provider is None or not stripe_provider.configured:
        return profile

    try:
        signal = stripe_provider.fetch_subscription_signal(
            subscription_id=profile.stripe_subscription_id,
            customer_id=profile.stripe_customer_id,
            email=profile.email,
        )
        if signal is None:
            return profile
        signal.user_id = profile.id
        return apply_signal(store, signal).profile
    except Exception as e:
        store.db.rollback()
        logger.warning(f"Subscription sync failed: user_id={profile.id}, error={e}")
        return store.get(profile.id) or profile


def complete_checkout(store: ProfileStore, stripe_provider: StripeProvider, session_id: str) -> ReconcileResult:
    """
    Reconcile a checkout session from the success landing.

    Raises:
        ProviderNotConfiguredError: If Stripe is not configured
        stripe.StripeError: If the session lookup fails
    """
    signal = stripe_provider.signal_from_checkout_session(session_id)
    return apply_signal(store, signal)
