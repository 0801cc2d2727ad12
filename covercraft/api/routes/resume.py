"""
Resume upload endpoint.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from covercraft.core.auth_dependency import AuthenticatedUser, get_current_user
from covercraft.core.dependencies import get_generation_gateway, get_profile_store
from covercraft.services.generation_service import GenerationGateway
from covercraft.services.profile_store import ProfileStore
from covercraft.services.resume_service import ResumeUploadError, ingest_resume

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Resume"])


@router.post("/resume-upload")
def upload_resume(
    resume: Optional[UploadFile] = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    gateway: GenerationGateway = Depends(get_generation_gateway),
):
    """
    Upload a PDF resume and get a structured summary.

    The summary is cached per document fingerprint; uploading the same
    document again returns the cached summary without a generation call.
    """
    if resume is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PDF file provided")

    store.ensure(user.id, user.email)
    data = resume.file.read()

    try:
        summary = ingest_resume(
            store,
            gateway,
            user.id,
            data,
            filename=resume.filename,
            content_type=resume.content_type,
        )
    except ResumeUploadError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    return summary.to_dict()
