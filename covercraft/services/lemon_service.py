"""
Lemon Squeezy webhook verification and event normalization.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from covercraft.services.payment_provider import (
    IgnoredEvent,
    PaymentProvider,
    ProviderNotConfiguredError,
    SubscriptionSignal,
    WebhookVerificationError,
    from_iso,
)

logger = logging.getLogger(__name__)


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw body, as sent in X-Signature."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    if not signature or not secret:
        return False
    candidate = signature.strip()
    if candidate.lower().startswith("sha256="):
        candidate = candidate[len("sha256="):]
    return hmac.compare_digest(candidate.encode("utf-8"), compute_signature(payload, secret).encode("utf-8"))


class LemonSqueezyProvider(PaymentProvider):
    """Lemon Squeezy subscription webhooks."""

    name = "lemon"

    def __init__(self, webhook_secret: Optional[str], product_id: Optional[str] = None):
        self.webhook_secret = webhook_secret or None
        self.product_id = str(product_id) if product_id else None

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_secret)

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        if not self.webhook_configured:
            raise ProviderNotConfiguredError("Missing LEMON_WEBHOOK_SECRET")

        if not verify_signature(payload, headers.get("x-signature"), self.webhook_secret):
            logger.warning("Lemon Squeezy webhook signature verification failed")
            raise WebhookVerificationError("Invalid signature")

        if not payload:
            return {}
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookVerificationError("Invalid JSON payload") from e
        if not isinstance(event, dict):
            raise WebhookVerificationError("Invalid JSON payload")
        return event

    def parse_event(self, event: Dict[str, Any]) -> Union[SubscriptionSignal, IgnoredEvent]:
        meta = event.get("meta") or {}
        data = event.get("data") or {}
        attrs = data.get("attributes") or {}
        event_name = str(meta.get("event_name") or "").lower()
        object_type = str(data.get("type") or "").lower()

        if not (event_name.startswith("subscription_") or object_type == "subscriptions"):
            return IgnoredEvent(event_type=event_name)

        first_item = attrs.get("first_order_item") or {}
        product_id = str(attrs.get("product_id") or first_item.get("product_id") or "")
        if self.product_id and product_id and product_id != self.product_id:
            logger.info(f"Lemon Squeezy event for other product ignored: product_id={product_id}")
            return IgnoredEvent(event_type=event_name, reason="product_mismatch")

        custom_data = meta.get("custom_data") or attrs.get("custom_data") or {}
        user_id = custom_data.get("user_id") or custom_data.get("userId") or attrs.get("user_id")
        email = (
            custom_data.get("user_email")
            or custom_data.get("userEmail")
            or attrs.get("user_email")
            or attrs.get("email")
            or attrs.get("customer_email")
        )
        period_end = (
            from_iso(attrs.get("renews_at"))
            or from_iso(attrs.get("ends_at"))
            or from_iso(attrs.get("trial_ends_at"))
        )
        variant_id = attrs.get("variant_id")

        return SubscriptionSignal(
            provider=self.name,
            event_type=event_name,
            user_id=str(user_id) if user_id else None,
            email=str(email) if email else None,
            status=attrs.get("status") or "",
            period_end=period_end,
            plan_id=f"lemon:{variant_id}" if variant_id else "lemon",
        )
