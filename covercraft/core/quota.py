"""
Free-tier quota policy.

Single source of truth for the free generation allowance. Pure functions only:
callers decide what to do with the decision.
"""
from dataclasses import dataclass
from typing import Optional

FREE_LIMIT = 3

# Subscription statuses that grant paid access
SUBSCRIBED_STATUSES = ("active", "trialing")

LIMIT_REACHED_MESSAGE = "Free limit reached. Subscribe to keep generating cover letters."


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""
    allowed: bool
    is_subscribed: bool
    free_remaining: int
    free_limit: int = FREE_LIMIT


def is_subscribed(is_pro: Optional[bool], subscription_status: Optional[str]) -> bool:
    """Paid access requires both the pro flag and an active/trialing status."""
    status = (subscription_status or "").lower()
    return is_pro is True and status in SUBSCRIBED_STATUSES


def free_remaining(generations_used: Optional[int], free_limit: int = FREE_LIMIT) -> int:
    return max(0, free_limit - (generations_used or 0))


def evaluate_quota(
    generations_used: Optional[int],
    is_pro: Optional[bool],
    subscription_status: Optional[str],
    free_limit: int = FREE_LIMIT,
) -> QuotaDecision:
    """
    Decide whether a generation may run.

    Args:
        generations_used: Successful generations so far (None treated as 0)
        is_pro: Profile pro flag
        subscription_status: Profile subscription status (case-insensitive)
        free_limit: Free generation allowance

    Returns:
        QuotaDecision; denied only when unsubscribed and no free generations remain
    """
    subscribed = is_subscribed(is_pro, subscription_status)
    remaining = free_remaining(generations_used, free_limit)
    return QuotaDecision(
        allowed=subscribed or remaining > 0,
        is_subscribed=subscribed,
        free_remaining=remaining,
        free_limit=free_limit,
    )
