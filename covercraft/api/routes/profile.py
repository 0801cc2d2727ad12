"""
Profile endpoints.

Every authenticated touch creates the caller's profile if it does not exist yet.
"""
import logging
from fastapi import APIRouter, Depends

from covercraft.core.auth_dependency import AuthenticatedUser, get_current_user
from covercraft.core.dependencies import get_profile_store, get_stripe_provider
from covercraft.core.quota import FREE_LIMIT
from covercraft.services.billing_service import sync_profile_subscription
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Profile"])


@router.post("/ensure-profile")
def ensure_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
):
    profile = store.ensure(user.id, user.email)
    return {"profile": profile.to_dict()}


@router.get("/profile")
def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    stripe_provider: StripeProvider = Depends(get_stripe_provider),
):
    """
    Get the caller's profile.

    When Stripe is configured the subscription is pulled and reconciled first,
    so a missed webhook heals on the next profile read.
    """
    profile = store.ensure(user.id, user.email)
    profile = sync_profile_subscription(store, profile, stripe_provider)

    data = profile.to_dict()
    data["free_limit"] = FREE_LIMIT
    return {"profile": data}
