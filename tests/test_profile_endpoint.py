"""
Tests for profile creation, the profile store and pull reconciliation.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import stripe

from covercraft.db.models import GenerationLog, Profile
from covercraft.services.payment_provider import SubscriptionSignal

from conftest import USER_EMAIL, USER_ID, auth_headers


def _future_ts(days=30):
    return int((datetime.now(timezone.utc) + timedelta(days=days)).timestamp())


def test_ensure_profile_creates_row_once(client, db):
    first = client.post("/api/ensure-profile", headers=auth_headers())
    second = client.post("/api/ensure-profile", headers=auth_headers())

    assert first.status_code == 200
    assert second.status_code == 200
    body = first.json()["profile"]
    assert body["id"] == USER_ID
    assert body["email"] == USER_EMAIL
    assert body["is_pro"] is False
    assert body["subscription_status"] == "none"
    assert body["generations_used"] == 0
    assert db.query(Profile).count() == 1


def test_ensure_fills_missing_email_only(store):
    store.ensure(USER_ID, None)
    assert store.get(USER_ID).email is None

    store.ensure(USER_ID, USER_EMAIL)
    assert store.get(USER_ID).email == USER_EMAIL

    store.ensure(USER_ID, "changed@example.com")
    assert store.get(USER_ID).email == USER_EMAIL


def test_find_by_email_is_case_insensitive(store, profile):
    assert store.find_by_email("JANE@Example.com").id == USER_ID
    assert store.find_by_email("nobody@example.com") is None
    assert store.find_by_email(None) is None


def test_increment_generations_returns_new_value(store, profile):
    assert store.increment_generations(USER_ID) == 1
    assert store.increment_generations(USER_ID) == 2
    assert store.get(USER_ID).generations_used == 2


def test_log_generation_appends_rows(store, db, profile):
    assert store.log_generation(USER_ID, USER_EMAIL, False, 0, "Backend unavailable") is True
    assert store.log_generation(USER_ID, None, True, 1) is True

    logs = db.query(GenerationLog).order_by(GenerationLog.id).all()
    assert [log.success for log in logs] == [False, True]
    assert logs[0].error_message == "Backend unavailable"
    assert logs[1].user_email == ""


def test_profile_includes_free_limit(client, stripe_provider):
    stripe_provider.secret_key = None

    response = client.get("/api/profile", headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["profile"]["free_limit"] == 3


def test_profile_pull_applies_stripe_subscription(client, db, store, profile, stripe_provider, monkeypatch):
    store.update(profile, {"stripe_customer_id": "cus_123"})
    period_end = _future_ts()
    subscription = {
        "id": "sub_123",
        "customer": "cus_123",
        "status": "active",
        "metadata": {},
        "items": {"data": [{"current_period_end": period_end, "price": {"id": "price_test_monthly"}}]},
    }
    calls = []

    def fake_list(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(data=[stripe.Subscription.construct_from(subscription, "sk_test_1234567890")])

    monkeypatch.setattr(stripe.Subscription, "list", fake_list)

    response = client.get("/api/profile", headers=auth_headers())

    assert response.status_code == 200
    body = response.json()["profile"]
    assert body["is_pro"] is True
    assert body["subscription_status"] == "active"
    assert body["stripe_subscription_id"] == "sub_123"
    assert body["plan_id"] == "price_test_monthly"
    assert calls[0]["customer"] == "cus_123"
    assert calls[0]["status"] == "all"


def test_profile_pull_failure_returns_stored_profile(client, store, profile, stripe_provider, monkeypatch):
    store.update(profile, {"stripe_subscription_id": "sub_missing", "is_pro": True, "subscription_status": "active"})

    def fail(*args, **kwargs):
        raise stripe.InvalidRequestError("No such subscription: 'sub_missing'", "id")

    monkeypatch.setattr(stripe.Subscription, "retrieve", fail)

    response = client.get("/api/profile", headers=auth_headers())

    assert response.status_code == 200
    body = response.json()["profile"]
    assert body["is_pro"] is True
    assert body["subscription_status"] == "active"


def test_profile_pull_without_subscription_keeps_profile(client, stripe_provider, monkeypatch):
    def empty_customers(**kwargs):
        return SimpleNamespace(data=[])

    monkeypatch.setattr(stripe.Customer, "list", empty_customers)

    response = client.get("/api/profile", headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["profile"]["subscription_status"] == "none"


def test_fetch_signal_prefers_subscription_id(stripe_provider, monkeypatch):
    retrieved = []

    def fake_retrieve(subscription_id, **kwargs):
        retrieved.append(subscription_id)
        return stripe.Subscription.construct_from(
            {"id": subscription_id, "customer": "cus_1", "status": "trialing", "current_period_end": _future_ts()},
            "sk_test_1234567890",
        )

    monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)

    signal = stripe_provider.fetch_subscription_signal("sub_1", "cus_1", USER_EMAIL)

    assert isinstance(signal, SubscriptionSignal)
    assert retrieved == ["sub_1"]
    assert signal.status == "trialing"
    assert signal.email == USER_EMAIL


def test_fetch_signal_finds_customer_by_email(stripe_provider, monkeypatch):
    customer = stripe.Customer.construct_from({"id": "cus_9", "email": USER_EMAIL}, "sk_test_1234567890")
    subscription = stripe.Subscription.construct_from(
        {
            "id": "sub_9",
            "customer": "cus_9",
            "status": "past_due",
            "items": {"object": "list", "data": [{"current_period_end": _future_ts(), "price": {"id": "price_9"}}]},
        },
        "sk_test_1234567890",
    )
    listed = []

    def fake_subscriptions(**kwargs):
        listed.append(kwargs["customer"])
        return SimpleNamespace(data=[subscription])

    monkeypatch.setattr(stripe.Customer, "list", lambda **kwargs: SimpleNamespace(data=[customer]))
    monkeypatch.setattr(stripe.Subscription, "list", fake_subscriptions)

    signal = stripe_provider.fetch_subscription_signal(email=USER_EMAIL)

    assert listed == ["cus_9"]
    assert signal.customer_id == "cus_9"
    assert signal.subscription_id == "sub_9"
    assert signal.status == "past_due"
    assert signal.plan_id == "price_9"
    assert signal.period_end is not None
