"""
LLM Provider Module

Provides pluggable abstraction for text-generation and embedding backends
(Claude, Ollama).
"""

from coderevu.llm.provider import (
    EmbeddingProvider,
    LLMProvider,
    get_embedding_provider,
    get_llm_provider,
)
from coderevu.llm.claude import ClaudeProvider
from coderevu.llm.ollama import OllamaEmbeddingProvider, OllamaProvider

__all__ = [
    "EmbeddingProvider",
    "LLMProvider",
    "get_embedding_provider",
    "get_llm_provider",
    "ClaudeProvider",
    "OllamaEmbeddingProvider",
    "OllamaProvider",
]
