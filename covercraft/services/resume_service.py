"""
Resume ingestion: PDF text extraction, scanned-document detection and a
summary cached per document fingerprint.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from covercraft.services.generation_service import MAX_SUMMARY_CHARS, GenerationGateway
from covercraft.services.profile_store import ProfileStore
from covercraft.services.resume_parser import ResumeExtractionError, compute_fingerprint, extract_pdf_text

logger = logging.getLogger(__name__)

SCANNED_THRESHOLD = 200
MAX_FILE_BYTES = 20 * 1024 * 1024

NOT_PDF_MESSAGE = "Only PDF files are supported."
TOO_LARGE_MESSAGE = "File is too large. Max size is 20MB."
UNREADABLE_MESSAGE = "Failed to read PDF. Try a different file or paste your resume manually."
SCANNED_MESSAGE = "This looks like a scanned PDF. Upload a text-based PDF or paste your resume."
RAW_FALLBACK_MESSAGE = "AI summary unavailable. Raw text extracted instead."


class ResumeUploadError(Exception):
    """Upload rejected; detail is the JSON error body (string or dict)."""

    def __init__(self, status_code: int, detail: Union[str, Dict[str, Any]]):
        super().__init__(detail if isinstance(detail, str) else detail.get("error"))
        self.status_code = status_code
        self.detail = detail


@dataclass
class ResumeSummary:
    summary: str
    cached: bool = False
    raw: bool = False
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.raw:
            return {"summary": self.summary, "raw": True, "message": self.message}
        return {"summary": self.summary, "cached": self.cached}


def is_pdf_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    return (content_type or "").lower() == "application/pdf" or (filename or "").lower().endswith(".pdf")


def ingest_resume(
    store: ProfileStore,
    gateway: GenerationGateway,
    user_id: str,
    data: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ResumeSummary:
    """
    Extract, fingerprint and summarize an uploaded resume.

    Args:
        store: Profile store of the caller
        gateway: Generation gateway used for the summary
        user_id: Caller's profile id (the profile must exist)
        data: Raw uploaded bytes
        filename: Client-supplied file name
        content_type: Client-supplied content type

    Returns:
        ResumeSummary (cached, freshly summarized, or raw excerpt)

    Raises:
        ResumeUploadError: 400 not a PDF, 413 too large, 422 unreadable or scanned
    """
    if not is_pdf_upload(filename, content_type):
        raise ResumeUploadError(400, NOT_PDF_MESSAGE)
    if len(data) > MAX_FILE_BYTES:
        raise ResumeUploadError(413, TOO_LARGE_MESSAGE)

    try:
        text = extract_pdf_text(data)
    except ResumeExtractionError as e:
        logger.info(f"Resume extraction failed: user_id={user_id}, error={e}")
        raise ResumeUploadError(422, UNREADABLE_MESSAGE) from e

    if len(text) < SCANNED_THRESHOLD:
        raise ResumeUploadError(422, {"error": "scanned_pdf", "message": SCANNED_MESSAGE})

    resume_hash = compute_fingerprint(text)
    profile = store.get(user_id)
    if profile and profile.resume_hash == resume_hash and profile.resume_summary:
        logger.info(f"Resume summary cache hit: user_id={user_id}")
        return ResumeSummary(summary=profile.resume_summary, cached=True)

    result = gateway.summarize_resume(text)
    if not result.ok:
        logger.warning(f"Resume summary unavailable: user_id={user_id}, error={result.error}")
        return ResumeSummary(summary=text[:MAX_SUMMARY_CHARS], raw=True, message=RAW_FALLBACK_MESSAGE)

    summary = result.text.strip() or text[:MAX_SUMMARY_CHARS]
    store.save_resume_summary(user_id, resume_hash, summary)
    return ResumeSummary(summary=summary, cached=False)
