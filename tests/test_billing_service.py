"""
Unit tests for the subscription reconciler.
"""
from datetime import datetime, timedelta, timezone

import pytest

from covercraft.services.billing_service import apply_signal, process_webhook_event, resolve_profile
from covercraft.services.payment_provider import (
    EntitlementState,
    IgnoredEvent,
    SubscriptionSignal,
    as_utc,
    map_subscription_state,
)

from conftest import USER_EMAIL, USER_ID

NOW = datetime.now(timezone.utc).replace(microsecond=0)
FUTURE = NOW + timedelta(days=20)
PAST = NOW - timedelta(days=1)


def _signal(**kwargs):
    values = dict(provider="stripe", event_type="customer.subscription.updated")
    values.update(kwargs)
    return SubscriptionSignal(**values)


def _entitlement(profile):
    return (profile.is_pro, profile.subscription_status, as_utc(profile.current_period_end), profile.plan_id)


# ============================================
# State mapping
# ============================================

@pytest.mark.parametrize(
    "status, period_end, expected",
    [
        ("active", FUTURE, EntitlementState("active", True, FUTURE)),
        ("trialing", None, EntitlementState("trialing", True, None)),
        ("on_trial", FUTURE, EntitlementState("trialing", True, FUTURE)),
        ("past_due", FUTURE, EntitlementState("past_due", False, FUTURE)),
        ("canceled", FUTURE, EntitlementState("active", True, FUTURE)),
        ("cancelled", FUTURE, EntitlementState("active", True, FUTURE)),
        ("canceled", PAST, EntitlementState("canceled", False, PAST)),
        ("canceled", None, EntitlementState("canceled", False, None)),
        ("unpaid", None, EntitlementState("unpaid", False, None)),
        ("Incomplete_Expired", None, EntitlementState("incomplete_expired", False, None)),
        ("", None, EntitlementState("none", False, None)),
        (None, None, EntitlementState("none", False, None)),
    ],
)
def test_map_subscription_state(status, period_end, expected):
    assert map_subscription_state(status, period_end, now=NOW) == expected


def test_map_treats_naive_period_end_as_utc():
    naive = FUTURE.replace(tzinfo=None)
    state = map_subscription_state("canceled", naive, now=NOW)
    assert state.is_pro is True
    assert state.current_period_end == FUTURE


# ============================================
# Resolution order
# ============================================

def test_reference_id_wins_and_creates_row(store):
    store.ensure("other-user", USER_EMAIL)

    profile, matched_by = resolve_profile(store, _signal(user_id=USER_ID, email=USER_EMAIL))

    assert matched_by == "reference"
    assert profile.id == USER_ID
    assert store.get(USER_ID) is not None


def test_email_match_before_customer_id(store):
    by_email = store.ensure("by-email", "payer@example.com")
    by_customer = store.ensure("by-customer", "someone@example.com")
    store.update(by_customer, {"stripe_customer_id": "cus_1"})

    profile, matched_by = resolve_profile(store, _signal(email="PAYER@example.com", customer_id="cus_1"))

    assert matched_by == "email"
    assert profile.id == by_email.id


def test_customer_then_subscription_id(store):
    profile = store.ensure(USER_ID, USER_EMAIL)
    store.update(profile, {"stripe_subscription_id": "sub_9"})

    matched, matched_by = resolve_profile(store, _signal(customer_id="cus_unknown", subscription_id="sub_9"))

    assert matched_by == "subscription"
    assert matched.id == USER_ID


def test_unmatched_signal_is_a_noop(store, db):
    result = apply_signal(store, _signal(customer_id="cus_nobody", status="active"))

    assert result.matched is False
    assert result.profile is None


# ============================================
# apply_signal
# ============================================

def test_active_with_future_period_grants_pro(store, profile):
    store.update(profile, {"stripe_customer_id": "cus_123"})

    result = apply_signal(store, _signal(
        customer_id="cus_123",
        subscription_id="sub_123",
        status="active",
        period_end=FUTURE,
        plan_id="price_1",
    ))

    assert result.matched is True
    assert _entitlement(result.profile) == (True, "active", FUTURE, "price_1")
    assert result.profile.stripe_subscription_id == "sub_123"


def test_canceled_without_future_period_revokes_pro(store, profile):
    store.update(profile, {"stripe_customer_id": "cus_123", "is_pro": True, "subscription_status": "active"})

    result = apply_signal(store, _signal(customer_id="cus_123", status="canceled", period_end=PAST))

    assert result.profile.is_pro is False
    assert result.profile.subscription_status == "canceled"


def test_applying_same_signal_twice_is_idempotent(store, profile):
    store.update(profile, {"stripe_customer_id": "cus_123"})
    signal = _signal(customer_id="cus_123", subscription_id="sub_1", status="trialing", period_end=FUTURE, plan_id="p")

    first = _entitlement(apply_signal(store, signal).profile)
    second = _entitlement(apply_signal(store, signal).profile)

    assert first == second == (True, "trialing", FUTURE, "p")


def test_deletion_clears_subscription_fields(store, profile):
    store.update(profile, {
        "stripe_customer_id": "cus_123",
        "stripe_subscription_id": "sub_123",
        "is_pro": True,
        "subscription_status": "active",
        "plan_id": "price_1",
        "current_period_end": FUTURE,
    })

    result = apply_signal(store, _signal(
        event_type="customer.subscription.deleted",
        customer_id="cus_123",
        subscription_id="sub_123",
        status="canceled",
        clear_subscription=True,
    ))

    assert _entitlement(result.profile) == (False, "canceled", None, None)
    assert result.profile.stripe_subscription_id is None
    assert result.profile.stripe_customer_id == "cus_123"


def test_partial_signal_keeps_stored_period_and_plan(store, profile):
    store.update(profile, {"stripe_subscription_id": "sub_1", "current_period_end": FUTURE, "plan_id": "price_1"})

    result = apply_signal(store, _signal(
        event_type="invoice.payment_failed",
        subscription_id="sub_1",
        status="past_due",
        partial=True,
    ))

    assert _entitlement(result.profile) == (False, "past_due", FUTURE, "price_1")


def test_linkage_only_signal_leaves_entitlement(store, profile):
    result = apply_signal(store, _signal(
        event_type="checkout.session.completed",
        user_id=USER_ID,
        customer_id="cus_new",
    ))

    assert result.profile.stripe_customer_id == "cus_new"
    assert result.profile.subscription_status == "none"
    assert result.profile.is_pro is False


# ============================================
# Webhook event processing
# ============================================

class _StaticProvider:
    name = "static"

    def __init__(self, parsed):
        self.parsed = parsed

    def parse_event(self, event):
        return self.parsed


def test_ignored_event_is_acknowledged(store):
    body = process_webhook_event(store, _StaticProvider(IgnoredEvent("order_created", "product_mismatch")), {})
    assert body == {"received": True, "ignored": True, "reason": "product_mismatch"}


def test_processed_event_reports_match(store, profile):
    body = process_webhook_event(store, _StaticProvider(_signal(email=USER_EMAIL, status="active")), {})
    assert body == {"received": True, "matched": True}
