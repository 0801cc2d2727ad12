"""
Stripe service for checkout, subscription lookups, and webhook handling.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Union

import stripe

from covercraft.services.payment_provider import (
    IgnoredEvent,
    PaymentProvider,
    ProviderNotConfiguredError,
    SubscriptionSignal,
    WebhookVerificationError,
    from_timestamp,
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = ("customer.subscription.created", "customer.subscription.updated")
INVOICE_STATUS = {
    "invoice.payment_succeeded": "active",
    "invoice.payment_failed": "past_due",
}


def _as_dict(obj) -> Optional[Dict[str, Any]]:
    """Plain dict copy of a Stripe API object; StripeObject is not a dict."""
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return obj


def _first_item(obj: Mapping, key: str) -> Mapping:
    """First element of a Stripe list attribute (e.g. subscription items), or {}."""
    container = obj.get(key) or {}
    data = container.get("data") or []
    return data[0] if data else {}


def _subscription_period_end(subscription: Mapping):
    # Newer API versions report the period on the subscription item
    period_end = subscription.get("current_period_end")
    if not period_end:
        period_end = _first_item(subscription, "items").get("current_period_end")
    return from_timestamp(period_end)


def _subscription_price_id(subscription: Mapping) -> Optional[str]:
    price = _first_item(subscription, "items").get("price") or {}
    return price.get("id")


def _metadata_user_id(obj: Mapping) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("user_id") or None


def _invoice_subscription_id(invoice: Mapping) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        parent = invoice.get("parent") or {}
        details = parent.get("subscription_details") or {}
        subscription_id = details.get("subscription")
    if isinstance(subscription_id, Mapping):
        subscription_id = subscription_id.get("id")
    return subscription_id or None


class StripeProvider(PaymentProvider):
    """Stripe integration: webhooks, on-demand subscription pulls and checkout."""

    name = "stripe"

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str] = None,
        price_id: Optional[str] = None,
    ):
        self.secret_key = secret_key or None
        self.webhook_secret = webhook_secret or None
        self.price_id = price_id or None
        if not self.secret_key:
            logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    @property
    def webhook_configured(self) -> bool:
        return bool(self.secret_key and self.webhook_secret)

    def _require_key(self) -> None:
        if not self.secret_key:
            raise ProviderNotConfiguredError("Stripe is not configured (STRIPE_SECRET_KEY missing)")

    # ============================================
    # Webhooks
    # ============================================

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        """
        Verify and parse Stripe webhook event.

        Args:
            payload: Raw request body bytes
            headers: Request headers (Stripe-Signature is required)

        Returns:
            Parsed event

        Raises:
            ProviderNotConfiguredError: If Stripe keys are missing
            WebhookVerificationError: If webhook verification fails
        """
        if not self.webhook_configured:
            raise ProviderNotConfiguredError("Stripe is not configured")

        signature = headers.get("stripe-signature")
        if not signature:
            raise WebhookVerificationError("Missing stripe-signature header")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise WebhookVerificationError("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise WebhookVerificationError("Invalid signature") from e

        event = _as_dict(event)
        logger.info(f"Verified webhook event: {event['type']}, id={event.get('id')}")
        return event

    def parse_event(self, event: Dict[str, Any]) -> Union[SubscriptionSignal, IgnoredEvent]:
        event_type = event.get("type") or ""
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            return self._signal_from_checkout(obj, event_type, strict=True)

        if event_type in SUBSCRIPTION_EVENTS:
            return self.signal_from_subscription(obj, event_type)

        if event_type == "customer.subscription.deleted":
            return SubscriptionSignal(
                provider=self.name,
                event_type=event_type,
                user_id=_metadata_user_id(obj),
                customer_id=obj.get("customer"),
                subscription_id=obj.get("id"),
                status="canceled",
                period_end=None,
                plan_id=None,
                clear_subscription=True,
            )

        if event_type in INVOICE_STATUS:
            return self._signal_from_invoice(obj, event_type)

        return IgnoredEvent(event_type=event_type)

    def signal_from_subscription(self, subscription: Mapping, event_type: str) -> SubscriptionSignal:
        return SubscriptionSignal(
            provider=self.name,
            event_type=event_type,
            user_id=_metadata_user_id(subscription),
            customer_id=subscription.get("customer"),
            subscription_id=subscription.get("id"),
            status=subscription.get("status"),
            period_end=_subscription_period_end(subscription),
            plan_id=_subscription_price_id(subscription),
        )

    def _signal_from_invoice(self, invoice: Mapping, event_type: str) -> Union[SubscriptionSignal, IgnoredEvent]:
        subscription_id = _invoice_subscription_id(invoice)
        if not subscription_id:
            logger.warning(f"{event_type}: No subscription ID in invoice")
            return IgnoredEvent(event_type=event_type, reason="no_subscription")

        line = _first_item(invoice, "lines")
        period = line.get("period") or {}
        price = line.get("price") or {}
        return SubscriptionSignal(
            provider=self.name,
            event_type=event_type,
            email=invoice.get("customer_email"),
            customer_id=invoice.get("customer"),
            subscription_id=subscription_id,
            status=INVOICE_STATUS[event_type],
            period_end=from_timestamp(period.get("end")),
            plan_id=price.get("id"),
            partial=True,
        )

    def _signal_from_checkout(self, session: Mapping, event_type: str, strict: bool) -> SubscriptionSignal:
        """
        Build a signal from a checkout session.

        strict=True lets subscription lookup errors propagate (webhook path, so
        Stripe retries); otherwise a failed lookup assumes an active subscription.
        """
        customer_details = session.get("customer_details") or {}
        subscription_id = session.get("subscription")
        signal = SubscriptionSignal(
            provider=self.name,
            event_type=event_type,
            user_id=session.get("client_reference_id") or _metadata_user_id(session),
            email=customer_details.get("email") or session.get("customer_email"),
            customer_id=session.get("customer"),
            subscription_id=subscription_id,
        )
        if not subscription_id:
            return signal

        signal.status = "active"
        try:
            subscription = self.retrieve_subscription(subscription_id)
        except stripe.StripeError as e:
            if strict:
                raise
            logger.warning(f"Failed to retrieve subscription from Stripe: {e}")
            return signal

        signal.status = subscription.get("status") or "active"
        signal.period_end = _subscription_period_end(subscription)
        signal.plan_id = _subscription_price_id(subscription)
        return signal

    # ============================================
    # API lookups
    # ============================================

    def retrieve_subscription(self, subscription_id: str):
        self._require_key()
        return _as_dict(stripe.Subscription.retrieve(subscription_id, api_key=self.secret_key))

    def _latest_subscription(self, customer_id: str):
        result = stripe.Subscription.list(customer=customer_id, status="all", limit=1, api_key=self.secret_key)
        return _as_dict(result.data[0]) if result.data else None

    def fetch_subscription_signal(
        self,
        subscription_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[SubscriptionSignal]:
        """
        Pull the current subscription state directly from Stripe.

        Lookup order: subscription id, customer id (latest subscription),
        then customer email.

        Returns:
            SubscriptionSignal, or None when Stripe knows no subscription

        Raises:
            ProviderNotConfiguredError: If STRIPE_SECRET_KEY is missing
            stripe.StripeError: On API failures
        """
        self._require_key()

        subscription = None
        if subscription_id:
            subscription = self.retrieve_subscription(subscription_id)
        elif customer_id:
            subscription = self._latest_subscription(customer_id)
        elif email:
            customers = stripe.Customer.list(email=email, limit=1, api_key=self.secret_key)
            if customers.data:
                customer_id = customers.data[0].id
                subscription = self._latest_subscription(customer_id)

        if not subscription:
            return None

        signal = self.signal_from_subscription(subscription, "subscription.sync")
        signal.email = email
        return signal

    def signal_from_checkout_session(self, session_id: str) -> SubscriptionSignal:
        """
        Resolve a completed checkout session (success-page landing).

        Raises:
            ProviderNotConfiguredError: If STRIPE_SECRET_KEY is missing
            stripe.StripeError: If the session lookup fails
        """
        self._require_key()
        session = _as_dict(stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key))
        signal = self._signal_from_checkout(session, "checkout.session.lookup", strict=False)
        if signal.status is None:
            signal.status = "active"
        return signal

    # ============================================
    # Checkout
    # ============================================

    def create_checkout_session(
        self,
        user_id: str,
        email: Optional[str],
        customer_id: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> str:
        """
        Create Stripe Checkout session for the paid subscription.

        Returns:
            Checkout session URL

        Raises:
            ProviderNotConfiguredError: If the secret key or price id is missing
            stripe.StripeError: If Stripe rejects the request
        """
        self._require_key()
        if not self.price_id:
            raise ProviderNotConfiguredError("Stripe is not configured (STRIPE_PRICE_ID missing)")

        params = dict(
            mode="subscription",
            line_items=[{"price": self.price_id, "quantity": 1}],
            client_reference_id=user_id,
            metadata={"user_id": user_id},
            subscription_data={"metadata": {"user_id": user_id}},
            success_url=success_url,
            cancel_url=cancel_url,
        )
        if customer_id:
            params["customer"] = customer_id
        elif email:
            params["customer_email"] = email

        session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        logger.info(f"Created checkout session for user_id={user_id}, session_id={session.id}")
        return session.url
