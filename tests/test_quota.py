"""
Unit tests for the free-tier quota policy.
"""
import pytest

from covercraft.core.quota import FREE_LIMIT, evaluate_quota, free_remaining, is_subscribed


def test_free_limit_is_three():
    assert FREE_LIMIT == 3


@pytest.mark.parametrize("used, allowed", [(0, True), (2, True), (3, False), (10, False)])
def test_free_user_denied_only_when_allowance_spent(used, allowed):
    decision = evaluate_quota(used, is_pro=False, subscription_status="none")
    assert decision.allowed is allowed
    assert decision.is_subscribed is False
    assert decision.free_remaining == max(0, FREE_LIMIT - used)


def test_subscriber_allowed_past_free_limit():
    decision = evaluate_quota(50, is_pro=True, subscription_status="active")
    assert decision.allowed is True
    assert decision.is_subscribed is True
    assert decision.free_remaining == 0


def test_status_is_case_insensitive():
    assert is_subscribed(True, "TRIALING") is True
    assert is_subscribed(True, "Active") is True


def test_pro_flag_without_paid_status_is_not_subscribed():
    assert is_subscribed(True, "past_due") is False
    assert is_subscribed(True, None) is False
    assert evaluate_quota(3, is_pro=True, subscription_status="canceled").allowed is False


def test_paid_status_without_pro_flag_is_not_subscribed():
    assert is_subscribed(False, "active") is False
    assert is_subscribed(None, "active") is False


def test_missing_counter_treated_as_zero():
    assert free_remaining(None) == FREE_LIMIT
    assert evaluate_quota(None, None, None).allowed is True


def test_decision_is_immutable():
    decision = evaluate_quota(0, False, "none")
    with pytest.raises(AttributeError):
        decision.allowed = False
