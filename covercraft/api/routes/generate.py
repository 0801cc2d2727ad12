"""
Cover letter generation endpoint.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status

from covercraft.core.auth_dependency import AuthenticatedUser, get_current_user
from covercraft.core.dependencies import get_generation_gateway, get_profile_store
from covercraft.core.quota import LIMIT_REACHED_MESSAGE, evaluate_quota, free_remaining
from covercraft.schemas.generate import GenerateRequest, GenerateResponse
from covercraft.services.generation_service import GenerationGateway
from covercraft.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Generate"])


@router.post("/generate", response_model=GenerateResponse)
def generate(
    body: GenerateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    gateway: GenerationGateway = Depends(get_generation_gateway),
):
    """
    Generate a cover letter.

    Free users get FREE_LIMIT generations; after that only subscribers may
    generate. The usage counter only moves after a successful generation.
    """
    if not body.jobDescription or not body.resume:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Job description and resume are required",
        )

    profile = store.ensure(user.id, user.email)
    generations_used = profile.generations_used or 0

    # ✅ Quota check
    decision = evaluate_quota(generations_used, profile.is_pro, profile.subscription_status)
    if not decision.allowed:
        logger.info(f"Free limit reached: user_id={user.id}, generations_used={generations_used}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "limit_reached", "message": LIMIT_REACHED_MESSAGE},
        )

    # ✅ Generation chain
    result = gateway.generate(body.jobDescription, body.resume, body.tone)
    if not result.ok:
        store.log_generation(user.id, user.email, False, generations_used, result.error)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)

    # ✅ Count + log success
    new_count = store.increment_generations(user.id)
    if new_count is None:
        new_count = generations_used + 1
    store.log_generation(user.id, user.email, True, new_count)

    logger.info(f"Cover letter generated: user_id={user.id}, source={result.source}, generations_used={new_count}")

    return GenerateResponse(
        text=result.text,
        full_access=True,
        locked=False,
        generations_used=new_count,
        free_limit=decision.free_limit,
        free_remaining=None if decision.is_subscribed else free_remaining(new_count, decision.free_limit),
    )
