"""
Abstract LLM Provider Interface

Defines the interfaces that text-generation and embedding backends must
implement, and factories that build them from Settings.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from coderevu.config import Settings

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """
    Abstract base class for text-generation providers.

    All LLM providers (Claude, Ollama) must implement this interface to be
    used by the review workflow.
    """

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """
        Generate a completion for a single user prompt.

        Args:
            prompt: Full prompt text

        Returns:
            Generated text (markdown for review prompts)

        Raises:
            TimeoutError: If generation takes too long
            RuntimeError: If provider is unavailable or returns nothing
        """
        pass


class EmbeddingProvider(ABC):
    """Abstract base class for text-embedding providers."""

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Compute the embedding vector of a text.

        Raises:
            TimeoutError: If the request takes too long
            RuntimeError: If provider is unavailable or returns no vector
        """
        pass


def get_llm_provider(settings: Settings) -> LLMProvider:
    """
    Factory function to create LLM provider based on configuration.

    Returns:
        Configured LLM provider instance (ClaudeProvider or OllamaProvider)

    Raises:
        ValueError: If configured provider is not supported or required config is missing
    """
    provider_name = settings.llm_provider.lower()

    if provider_name == "claude":
        from coderevu.llm.claude import ClaudeProvider

        if not settings.claude_api_key:
            raise ValueError(
                "Claude provider selected but CLAUDE_API_KEY not configured"
            )

        return ClaudeProvider(api_key=settings.claude_api_key, model=settings.claude_model)

    elif provider_name == "ollama":
        from coderevu.llm.ollama import OllamaProvider

        return OllamaProvider(base_url=settings.ollama_base_url, model=settings.ollama_model)

    else:
        raise ValueError(
            f"Unknown LLM provider: {provider_name}. Must be 'claude' or 'ollama'"
        )


def get_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Build the embedding provider (always the configured Ollama instance)."""
    from coderevu.llm.ollama import OllamaEmbeddingProvider

    return OllamaEmbeddingProvider(
        base_url=settings.ollama_base_url, model=settings.embedding_model
    )
