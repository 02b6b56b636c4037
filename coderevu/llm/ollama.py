"""
Ollama Provider Implementation

Uses a local Ollama instance for review generation and for embedding
repository files.
"""

import logging
from typing import List

import requests
from requests.exceptions import ConnectionError, RequestException, Timeout

from coderevu.llm.provider import EmbeddingProvider, LLMProvider

logger = logging.getLogger(__name__)


class _OllamaClient:
    """Shared HTTP plumbing for the Ollama providers."""

    def __init__(self, base_url: str, model: str, timeout: int):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    def _post(self, path: str, body: dict) -> dict:
        """
        POST to the Ollama API and return the decoded JSON body.

        Raises:
            TimeoutError: If request exceeds timeout
            RuntimeError: If Ollama is unreachable or returns an error
        """
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except Timeout:
            logger.error(f"Ollama request timeout after {self.timeout}s")
            raise TimeoutError(f"Ollama request timed out after {self.timeout}s")

        except ConnectionError as e:
            logger.error(f"Connection error to Ollama: {str(e)}")
            raise RuntimeError(
                f"Connection error to Ollama at {self.base_url}: {str(e)}"
            )

        except RequestException as e:
            logger.error(f"Ollama HTTP error: {str(e)}")
            raise RuntimeError(f"Ollama HTTP error: {str(e)}")


class OllamaProvider(_OllamaClient, LLMProvider):
    """
    Ollama LLM Provider for local model inference.

    Supports any model installed in Ollama (llama3, mistral, etc.)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3",
        timeout: int = 300,
    ):
        """
        Initialize Ollama provider.

        Args:
            base_url: Base URL of Ollama instance (default: http://localhost:11434)
            model: Model name to use (default: llama3)
            timeout: Request timeout in seconds (local inference is slow)
        """
        super().__init__(base_url, model, timeout)

    def generate(self, prompt: str) -> str:
        data = self._post(
            "/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": 0.3},
            },
        )

        if "response" in data:
            response_text = data["response"]
            logger.debug(f"Ollama response: {response_text[:200]}...")
            return response_text

        raise RuntimeError("Ollama returned unexpected response format")


class OllamaEmbeddingProvider(_OllamaClient, EmbeddingProvider):
    """Embeds text with an Ollama embedding model (e.g. nomic-embed-text)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: int = 60,
    ):
        super().__init__(base_url, model, timeout)

    def embed(self, text: str) -> List[float]:
        data = self._post("/api/embed", {"model": self.model, "input": text})

        embeddings = data.get("embeddings")
        if not embeddings:
            raise RuntimeError("Ollama returned no embedding")
        return embeddings[0]
