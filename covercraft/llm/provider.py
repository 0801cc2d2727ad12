"""
LLM Provider interface for abstracting LLM implementations.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMProviderError(Exception):
    """
    Raised when a provider call fails.

    `connection_error` distinguishes an unreachable provider from an error
    response returned by it.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, connection_error: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.connection_error = connection_error


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    model: str = ""
    base_url: str = ""

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier (provider default when None)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMProviderError: On any provider failure
        """
        pass

    @abstractmethod
    def list_models(self) -> List[str]:
        """
        List model ids available to the configured key.

        Raises:
            LLMProviderError: On any provider failure
        """
        pass
