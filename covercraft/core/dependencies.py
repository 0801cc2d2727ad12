"""
Clients built once at startup and the FastAPI dependencies that hand them out.

Everything lives on app.state; tests swap any of it through
app.dependency_overrides.
"""
import logging
from typing import Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from covercraft.core import config
from covercraft.core.auth_dependency import SupabaseIdentityResolver, get_db
from covercraft.llm.openai_provider import OpenAIProvider
from covercraft.services.generation_service import GenerationGateway
from covercraft.services.lemon_service import LemonSqueezyProvider
from covercraft.services.payment_provider import PaymentProvider
from covercraft.services.profile_store import ProfileStore
from covercraft.services.stripe_service import StripeProvider

logger = logging.getLogger(__name__)


# ============================================
# Builders
# ============================================

def build_identity_resolver() -> SupabaseIdentityResolver:
    if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
        logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not configured - every request will be unauthenticated")
    return SupabaseIdentityResolver(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)


def build_direct_provider() -> Optional[OpenAIProvider]:
    if not config.OPENAI_API_KEY:
        return None
    return OpenAIProvider(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        model=config.OPENAI_MODEL,
        site_url=config.get_site_url() or None,
    )


def build_generation_gateway() -> GenerationGateway:
    return GenerationGateway(
        backend_url=config.BACKEND_URL,
        direct_provider=build_direct_provider(),
        allow_local_fallback=config.ALLOW_LOCAL_FALLBACK,
        timeout=config.GENERATION_TIMEOUT_SECONDS,
    )


def build_payment_providers() -> Dict[str, PaymentProvider]:
    return {
        "stripe": StripeProvider(
            secret_key=config.STRIPE_SECRET_KEY,
            webhook_secret=config.STRIPE_WEBHOOK_SECRET,
            price_id=config.STRIPE_PRICE_ID,
        ),
        "lemon": LemonSqueezyProvider(
            webhook_secret=config.LEMON_WEBHOOK_SECRET,
            product_id=config.LEMON_PRODUCT_ID,
        ),
    }


# ============================================
# Dependencies
# ============================================

def get_profile_store(db: Session = Depends(get_db)) -> ProfileStore:
    return ProfileStore(db)


def get_generation_gateway(request: Request) -> GenerationGateway:
    return request.app.state.generation_gateway


def get_direct_provider(request: Request) -> Optional[OpenAIProvider]:
    return request.app.state.generation_gateway.direct_provider


def get_payment_providers(request: Request) -> Dict[str, PaymentProvider]:
    return request.app.state.payment_providers


def get_stripe_provider(providers: Dict[str, PaymentProvider] = Depends(get_payment_providers)) -> StripeProvider:
    return providers["stripe"]


def get_lemon_provider(providers: Dict[str, PaymentProvider] = Depends(get_payment_providers)) -> LemonSqueezyProvider:
    return providers["lemon"]
