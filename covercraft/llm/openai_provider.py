"""
OpenAI-compatible provider implementation.

Works against any chat-completions API that speaks the OpenAI protocol
(OpenAI, OpenRouter, ...) through a configurable base URL.
"""
import logging
from typing import Optional, Dict, List
from openai import OpenAI, APIConnectionError, APIError, APIStatusError

from covercraft.llm.provider import LLMProvider, LLMProviderError, LLMResponse

logger = logging.getLogger(__name__)

APP_TITLE = "CoverCraft"


class OpenAIProvider(LLMProvider):
    """OpenAI provider using official OpenAI SDK."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        site_url: Optional[str] = None,
    ):
        """Initialize OpenAI client."""
        if not api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model

        # Attribution headers used by OpenRouter; ignored by other providers
        headers = {"X-Title": APP_TITLE}
        if site_url:
            headers["HTTP-Referer"] = site_url

        self.client = OpenAI(
            api_key=api_key,
            base_url=self.base_url,
            default_headers=headers,
            max_retries=0,
        )
        logger.info(f"OpenAI provider initialized: base_url={self.base_url}, model={self.model}")

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a chat completion."""
        model = model or self.model
        params = dict(model=model, messages=messages, temperature=temperature, **kwargs)
        if max_tokens:
            params["max_tokens"] = max_tokens
        try:
            response = self.client.chat.completions.create(**params)
        except APIConnectionError as e:
            logger.error(f"OpenAI connection error: {e}")
            raise LLMProviderError(str(e), connection_error=True) from e
        except APIStatusError as e:
            logger.error(f"OpenAI API error: status={e.status_code}, message={e.message}")
            raise LLMProviderError(_error_message(e), status_code=e.status_code) from e
        except APIError as e:
            logger.error(f"OpenAI API error: {e}", exc_info=True)
            raise LLMProviderError(_error_message(e)) from e

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice else None) or ""
        usage = response.usage
        return LLMResponse(
            content=content,
            tokens_in=usage.prompt_tokens if usage else 0,
            tokens_out=usage.completion_tokens if usage else 0,
            model=model,
            metadata={
                "finish_reason": choice.finish_reason if choice else None,
            }
        )

    def list_models(self) -> List[str]:
        """List model ids visible to the configured key."""
        try:
            return [m.id for m in self.client.models.list()]
        except APIConnectionError as e:
            raise LLMProviderError(str(e), connection_error=True) from e
        except APIStatusError as e:
            raise LLMProviderError(_error_message(e), status_code=e.status_code) from e
        except APIError as e:
            raise LLMProviderError(_error_message(e)) from e


def _error_message(error: APIError) -> str:
    """Prefer the provider's own error message over the SDK's wrapper text."""
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if isinstance(inner, str) and inner:
            return inner
        if body.get("message"):
            return str(body["message"])
    return getattr(error, "message", None) or str(error)
