"""
Diagnostics endpoints for deployment checks.

Secrets are only ever shown masked.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from covercraft.core import config
from covercraft.core.auth_dependency import AuthenticatedUser, get_db, get_optional_user
from covercraft.core.dependencies import get_direct_provider, get_profile_store
from covercraft.core.logging_config import mask_secret
from covercraft.llm.provider import LLMProvider, LLMProviderError
from covercraft.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Diagnostics"])

DIAG_STRIPE_PROFILE_FIELDS = (
    "id",
    "email",
    "is_pro",
    "subscription_status",
    "stripe_customer_id",
    "stripe_subscription_id",
    "plan_id",
    "current_period_end",
    "generations_used",
    "updated_at",
)


@router.get("/diag-ai")
def diag_ai(provider: Optional[LLMProvider] = Depends(get_direct_provider)):
    """Masked OpenAI configuration plus a /models probe."""
    env = {
        "has_openai_api_key": bool(config.OPENAI_API_KEY),
        "openai_api_key_preview": mask_secret(config.OPENAI_API_KEY),
        "openai_base_url": config.OPENAI_BASE_URL,
        "openai_model": config.OPENAI_MODEL,
    }
    if provider is None:
        return {"ok": False, "env": env, "error": "OPENAI_API_KEY is missing."}

    try:
        models = provider.list_models()
    except LLMProviderError as e:
        body = {"ok": False, "env": env, "provider_error": e.message}
        if e.status_code:
            body["provider_status"] = e.status_code
        return body

    return {"ok": True, "env": env, "provider_status": 200, "models_count": len(models)}


@router.get("/diag-generate")
def diag_generate(provider: Optional[LLMProvider] = Depends(get_direct_provider)):
    """One-sentence chat completion through the direct provider."""
    if provider is None:
        return {"ok": False, "error": "OPENAI_API_KEY missing"}

    model = provider.model
    base_url = provider.base_url
    try:
        response = provider.chat(
            messages=[{"role": "user", "content": "Write one sentence saying this test worked."}],
            temperature=0.2,
        )
    except LLMProviderError as e:
        body = {"ok": False, "model": model, "baseUrl": base_url, "error": e.message}
        if e.status_code:
            body["status"] = e.status_code
        return body

    return {"ok": True, "status": 200, "model": model, "baseUrl": base_url, "output": response.content or None}


@router.get("/diag-stripe")
def diag_stripe(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    store: ProfileStore = Depends(get_profile_store),
):
    """Masked Stripe configuration plus the caller's billing fields."""
    env = {
        "has_stripe_secret_key": bool(config.STRIPE_SECRET_KEY),
        "stripe_secret_key_preview": mask_secret(config.STRIPE_SECRET_KEY, min_length=10),
        "has_stripe_webhook_secret": bool(config.STRIPE_WEBHOOK_SECRET),
        "stripe_webhook_secret_preview": mask_secret(config.STRIPE_WEBHOOK_SECRET, min_length=10),
        "has_stripe_payment_link": bool(config.STRIPE_PAYMENT_LINK),
        "stripe_payment_link": config.STRIPE_PAYMENT_LINK or None,
        "has_supabase_service_role_key": bool(config.SUPABASE_SERVICE_ROLE_KEY),
        "site_url": config.get_site_url(),
    }

    if user is None:
        return {
            "ok": False,
            "auth": {"logged_in": False},
            "env": env,
            "error": "Not authenticated for profile check.",
        }

    auth = {"logged_in": True, "user_id": user.id, "email": user.email}
    try:
        profile = store.get(user.id)
    except SQLAlchemyError as e:
        logger.error(f"diag-stripe profile lookup failed: {e}")
        return {"ok": False, "auth": auth, "env": env, "error": str(e)}

    profile_data = None
    if profile is not None:
        data = profile.to_dict()
        profile_data = {field: data.get(field) for field in DIAG_STRIPE_PROFILE_FIELDS}

    return {"ok": True, "auth": auth, "env": env, "profile": profile_data}


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 with status "degraded" when the database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.warning(f"Health check database error: {e}")
        db_status = "error"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "service": "CoverCraft API",
    }
