"""
Generation gateway for cover letters and resume summaries.

Tries the hosted generation backend first, then a direct OpenAI-compatible
provider, and optionally a deterministic local template. Every path returns a
GenerationResult instead of raising.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import httpx

from covercraft.llm.provider import LLMProvider, LLMProviderError

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 900
DEFAULT_TONE = "confident and natural"

PROVIDER_KEY_MISSING = "AI provider key missing (OPENAI_API_KEY)."
KEY_INVALID_MESSAGE = "AI provider key is invalid. Update OPENAI_API_KEY."
MODEL_INVALID_MESSAGE = "AI model is invalid. Set OPENAI_MODEL to a valid provider model (e.g. openrouter/auto)."
QUOTA_EXCEEDED_MESSAGE = "AI provider quota exceeded. Add billing/credits to your provider project, then retry."


@dataclass
class GenerationResult:
    """Outcome of a generation attempt."""
    ok: bool
    text: str = ""
    error: Optional[str] = None
    source: Optional[str] = None  # "backend", "direct" or "local"


# ============================================
# Prompts
# ============================================

def build_cover_letter_prompt(job_description: str, resume: str, tone: Optional[str]) -> str:
    return f"""
You are a professional career coach and hiring manager.

Write a highly tailored, concise, persuasive cover letter based on the inputs.

Rules:
- Match the job description tone ({tone or DEFAULT_TONE})
- Sound human, not robotic
- Avoid generic phrases like "I am excited to apply" or "I am writing to express my interest"
- Do NOT repeat the resume verbatim
- Focus on value, impact, and fit
- Keep it under 300 words
- No fluff

Job Description:
{job_description}

Candidate Resume:
{resume}

Output ONLY the finished cover letter. No headings. No bullets.
"""


def build_summary_prompt(resume_text: str) -> str:
    return f"""You are a resume summarizer. Given the resume text below, produce a structured summary in EXACTLY this format. Do not invent details. Keep the total output under {MAX_SUMMARY_CHARS} characters.

NAME:
TITLE:
CORE SKILLS:
EXPERIENCE (2-4 bullets):
EDUCATION:
LINKS (if present):

Resume text:
{resume_text}"""


# ============================================
# Local template fallback
# ============================================

def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _long_lines(text: str, limit: int) -> List[str]:
    """First `limit` whitespace-collapsed lines longer than 20 characters."""
    lines = [_collapse(line) for line in re.split(r"\n+", text or "")]
    return [line for line in lines if len(line) > 20][:limit]


def build_local_cover_letter(job_description: str, resume: str, tone: Optional[str]) -> str:
    """Deterministic template letter built from the inputs, no external call."""
    priorities = _long_lines(job_description, 3)
    highlights = _long_lines(resume, 4)
    role_line = priorities[0] if priorities else "the role"

    lines = [
        "Dear Hiring Manager,",
        "",
        f"I am applying for {role_line}. My background aligns well with your needs, and I communicate "
        f"in a {tone or DEFAULT_TONE} style while focusing on measurable outcomes.",
        "",
    ]
    if highlights:
        lines.append("Relevant experience I would bring includes:")
        lines.extend(f"- {h}" for h in highlights)
        lines.append("")
    if len(priorities) > 1:
        lines.append("I am especially interested in contributing to priorities such as:")
        lines.extend(f"- {p}" for p in priorities[1:])
        lines.append("")
    lines.extend([
        "I would welcome the opportunity to discuss how I can contribute to your team from day one.",
        "",
        "Sincerely,",
        "[Your Name]",
    ])
    return "\n".join(lines)


def friendly_generation_error(error: Optional[str]) -> str:
    """Rewrite known provider errors into actionable messages."""
    message = error or "Generation failed"
    lowered = message.lower()
    if "incorrect api key" in lowered or "invalid api key" in lowered:
        message = KEY_INVALID_MESSAGE
    if "is not a valid model id" in lowered:
        message = MODEL_INVALID_MESSAGE
    if "exceeded your current quota" in lowered or "insufficient_quota" in lowered or "429" in lowered:
        message = QUOTA_EXCEEDED_MESSAGE
    return message


# ============================================
# Gateway
# ============================================

class GenerationGateway:
    """
    Backend -> direct provider -> local template fallback chain.

    Args:
        backend_url: Base URL of the hosted generation backend
        direct_provider: OpenAI-compatible provider, None when no key is configured
        allow_local_fallback: Whether to synthesize a template letter when both fail
        http_client: httpx client for backend calls
    """

    def __init__(
        self,
        backend_url: str,
        direct_provider: Optional[LLMProvider] = None,
        allow_local_fallback: bool = False,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.direct_provider = direct_provider
        self.allow_local_fallback = allow_local_fallback
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def _call_backend(self, payload: dict) -> GenerationResult:
        try:
            response = self.http_client.post(f"{self.backend_url}/generate", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Generation backend unreachable: {e}")
            return GenerationResult(ok=False, error=f"Backend unavailable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            logger.warning(f"Generation backend error: status={response.status_code}")
            return GenerationResult(ok=False, error=str(data.get("error") or "Generation failed"))

        text = str(data.get("text") or "").strip()
        if not text:
            return GenerationResult(ok=False, error="Backend returned empty output.")
        return GenerationResult(ok=True, text=text, source="backend")

    def _call_direct(self, prompt: str, temperature: float = 0.7) -> GenerationResult:
        if self.direct_provider is None:
            return GenerationResult(ok=False, error=PROVIDER_KEY_MISSING)
        try:
            response = self.direct_provider.chat(
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except LLMProviderError as e:
            if e.connection_error:
                return GenerationResult(ok=False, error=f"Direct provider unavailable: {e.message}")
            return GenerationResult(ok=False, error=e.message or f"Direct provider error ({e.status_code})")

        text = (response.content or "").strip()
        if not text:
            return GenerationResult(ok=False, error="Direct provider returned empty output.")
        return GenerationResult(ok=True, text=text, source="direct")

    def generate(self, job_description: str, resume: str, tone: Optional[str] = None) -> GenerationResult:
        """
        Generate a cover letter.

        Returns:
            GenerationResult; on failure `error` is already rewritten by
            friendly_generation_error()
        """
        backend = self._call_backend({"jobDescription": job_description, "resume": resume, "tone": tone})
        if backend.ok:
            return backend

        direct = self._call_direct(build_cover_letter_prompt(job_description, resume, tone))
        if direct.ok:
            logger.info("Generation served by direct provider after backend failure")
            return direct

        if self.allow_local_fallback:
            logger.warning("Both generation paths failed, using local template")
            return GenerationResult(
                ok=True,
                text=build_local_cover_letter(job_description, resume, tone),
                source="local",
            )

        # Without a direct provider the backend error is the meaningful one
        error = direct.error if self.direct_provider is not None else backend.error
        logger.error(f"Generation failed: backend={backend.error!r}, direct={direct.error!r}")
        return GenerationResult(ok=False, error=friendly_generation_error(error))

    def summarize_resume(self, resume_text: str) -> GenerationResult:
        """Structured resume summary through the backend, then the direct provider."""
        prompt = build_summary_prompt(resume_text)
        backend = self._call_backend({
            "jobDescription": "Summarize this resume in structured format.",
            "resume": resume_text,
            "tone": "direct and professional",
            "systemPrompt": prompt,
        })
        if backend.ok:
            return backend

        direct = self._call_direct(prompt, temperature=0.2)
        if direct.ok:
            return direct
        error = direct.error if self.direct_provider is not None else backend.error
        return GenerationResult(ok=False, error=error)
