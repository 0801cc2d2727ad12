"""
Payment provider interface and the canonical subscription state mapping.

Each provider verifies its own webhook signatures and turns its payloads into
SubscriptionSignal objects; the reconciler in billing_service only ever sees
signals, never raw provider payloads.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

ACTIVE_STATUSES = ("active",)
TRIAL_STATUSES = ("trialing", "on_trial")
CANCELED_STATUSES = ("canceled", "cancelled")


class PaymentProviderError(Exception):
    """Base class for payment provider failures."""


class ProviderNotConfiguredError(PaymentProviderError):
    """Required provider configuration (secret key, webhook secret) is missing."""


class WebhookVerificationError(PaymentProviderError):
    """Webhook signature missing or invalid, or the payload is malformed."""


@dataclass
class SubscriptionSignal:
    """
    Provider-neutral description of a subscription change.

    status is the provider's raw status string; None means the event only
    carries linkage ids (e.g. a checkout without a subscription). partial
    signals keep the stored period end and plan when they carry none.
    """
    provider: str
    event_type: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    status: Optional[str] = None
    period_end: Optional[datetime] = None
    plan_id: Optional[str] = None
    clear_subscription: bool = False
    partial: bool = False


@dataclass(frozen=True)
class IgnoredEvent:
    """A verified event that is acknowledged but not applied."""
    event_type: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class EntitlementState:
    """Canonical entitlement fields written to a profile."""
    subscription_status: str
    is_pro: bool
    current_period_end: Optional[datetime]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_timestamp(value: Any) -> Optional[datetime]:
    """Unix seconds to an aware UTC datetime."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def from_iso(value: Any) -> Optional[datetime]:
    """ISO-8601 string to an aware UTC datetime, None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def map_subscription_state(
    status: Optional[str],
    period_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> EntitlementState:
    """
    Map a provider status onto the canonical (status, is_pro, period_end) tuple.

    A cancelled subscription whose paid period has not ended yet stays active
    until the period end. Unknown statuses pass through without access.
    """
    raw = (status or "").strip().lower()
    period_end = as_utc(period_end)
    now = as_utc(now) or datetime.now(timezone.utc)

    if raw in ACTIVE_STATUSES:
        return EntitlementState("active", True, period_end)
    if raw in TRIAL_STATUSES:
        return EntitlementState("trialing", True, period_end)
    if raw in CANCELED_STATUSES:
        if period_end is not None and period_end > now:
            return EntitlementState("active", True, period_end)
        return EntitlementState("canceled", False, period_end)
    return EntitlementState(raw or "none", False, period_end)


class PaymentProvider(ABC):
    """A payment backend that can push subscription changes via webhooks."""

    name: str = ""

    @property
    @abstractmethod
    def webhook_configured(self) -> bool:
        """Whether webhook verification is possible."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        """
        Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes
            headers: Request headers

        Returns:
            Parsed event dictionary

        Raises:
            ProviderNotConfiguredError: Webhook secret not configured
            WebhookVerificationError: Signature missing/invalid or payload malformed
        """

    @abstractmethod
    def parse_event(self, event: Dict[str, Any]) -> Union[SubscriptionSignal, IgnoredEvent]:
        """
        Normalize a verified event.

        Returns:
            SubscriptionSignal, or IgnoredEvent for events that are acknowledged but not applied
        """
