"""
Tests for LLM and embedding providers.

Tests the provider interfaces, factories, and the Claude and Ollama
implementations with mocking to avoid external dependencies.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from anthropic import APIError, APITimeoutError

from coderevu.config import Settings
from coderevu.llm.claude import ClaudeProvider
from coderevu.llm.ollama import OllamaEmbeddingProvider, OllamaProvider
from coderevu.llm.prompts import REVIEW_PROMPT, build_review_prompt
from coderevu.llm.provider import (
    EmbeddingProvider,
    LLMProvider,
    get_embedding_provider,
    get_llm_provider,
)


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


# ============================================================================
# Test Interfaces & Factories
# ============================================================================


class TestProviderInterfaces:
    """Tests for the abstract provider interfaces."""

    def test_llm_provider_is_abstract(self):
        with pytest.raises(TypeError):
            LLMProvider()

    def test_embedding_provider_is_abstract(self):
        with pytest.raises(TypeError):
            EmbeddingProvider()


class TestProviderFactory:
    """Tests for get_llm_provider and get_embedding_provider."""

    @patch("coderevu.llm.claude.Anthropic")
    def test_factory_returns_claude_provider(self, mock_anthropic):
        provider = get_llm_provider(
            make_settings(llm_provider="claude", claude_api_key="sk-test", claude_model="claude-x")
        )
        assert isinstance(provider, ClaudeProvider)
        assert provider.model == "claude-x"
        mock_anthropic.assert_called_once_with(api_key="sk-test")

    def test_factory_returns_ollama_provider(self):
        provider = get_llm_provider(
            make_settings(llm_provider="ollama", ollama_model="mistral")
        )
        assert isinstance(provider, OllamaProvider)
        assert provider.model == "mistral"

    def test_factory_raises_if_claude_key_missing(self):
        with pytest.raises(ValueError, match="CLAUDE_API_KEY"):
            get_llm_provider(make_settings(llm_provider="claude", claude_api_key=""))

    def test_embedding_factory(self):
        provider = get_embedding_provider(
            make_settings(ollama_base_url="http://ollama:11434/", embedding_model="nomic-embed-text")
        )
        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.base_url == "http://ollama:11434"
        assert provider.model == "nomic-embed-text"


# ============================================================================
# Test Claude Provider
# ============================================================================


class TestClaudeProvider:
    """Tests for ClaudeProvider implementation."""

    @patch("coderevu.llm.claude.Anthropic")
    def test_claude_provider_initialization(self, mock_anthropic):
        provider = ClaudeProvider(api_key="test-key")
        assert provider.api_key == "test-key"
        assert provider.model == "claude-sonnet-4-5"
        assert provider.timeout == 120

    @patch("coderevu.llm.claude.Anthropic")
    def test_claude_generate(self, mock_anthropic):
        """Test Claude review generation."""
        mock_client = MagicMock()
        mock_message = MagicMock()
        mock_message.content = [MagicMock(text="## Summary\nLooks good")]
        mock_client.messages.create.return_value = mock_message
        mock_anthropic.return_value = mock_client

        provider = ClaudeProvider(api_key="test-key")
        result = provider.generate("Review this")

        assert result == "## Summary\nLooks good"
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Review this"}]
        assert kwargs["model"] == "claude-sonnet-4-5"

    @patch("coderevu.llm.claude.Anthropic")
    def test_claude_timeout_error(self, mock_anthropic):
        """Test Claude provider handles timeout errors."""
        mock_client = MagicMock()
        timeout_error = APITimeoutError.__new__(APITimeoutError)
        mock_client.messages.create.side_effect = timeout_error
        mock_anthropic.return_value = mock_client

        provider = ClaudeProvider(api_key="test-key")
        with pytest.raises(TimeoutError):
            provider.generate("code")

    @patch("coderevu.llm.claude.Anthropic")
    def test_claude_api_error(self, mock_anthropic):
        """Test Claude provider handles API errors."""
        mock_client = MagicMock()
        api_error = APIError.__new__(APIError)
        mock_client.messages.create.side_effect = api_error
        mock_anthropic.return_value = mock_client

        provider = ClaudeProvider(api_key="test-key")
        with pytest.raises(RuntimeError, match="Claude API error"):
            provider.generate("code")

    @patch("coderevu.llm.claude.Anthropic")
    def test_claude_empty_response(self, mock_anthropic):
        """Test Claude provider handles empty response."""
        mock_client = MagicMock()
        mock_message = MagicMock()
        mock_message.content = []
        mock_client.messages.create.return_value = mock_message
        mock_anthropic.return_value = mock_client

        provider = ClaudeProvider(api_key="test-key")
        with pytest.raises(RuntimeError, match="empty response"):
            provider.generate("code")


# ============================================================================
# Test Ollama Providers
# ============================================================================


class TestOllamaProvider:
    """Tests for OllamaProvider and OllamaEmbeddingProvider."""

    @patch("coderevu.llm.ollama.requests.post")
    def test_ollama_generate(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {"response": "## Summary\nok"}
        mock_post.return_value = mock_response

        provider = OllamaProvider(base_url="http://localhost:11434/", model="llama3")
        result = provider.generate("Review this")

        assert result == "## Summary\nok"
        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        assert url == "http://localhost:11434/api/generate"
        assert body["model"] == "llama3"
        assert body["stream"] is False

    @patch("coderevu.llm.ollama.requests.post")
    def test_ollama_unexpected_format(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {"done": True}
        mock_post.return_value = mock_response

        with pytest.raises(RuntimeError, match="unexpected response format"):
            OllamaProvider().generate("x")

    @patch("coderevu.llm.ollama.requests.post")
    def test_ollama_timeout(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()

        with pytest.raises(TimeoutError):
            OllamaProvider().generate("x")

    @patch("coderevu.llm.ollama.requests.post")
    def test_ollama_connection_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RuntimeError, match="Connection error to Ollama"):
            OllamaProvider().generate("x")

    @patch("coderevu.llm.ollama.requests.post")
    def test_embed(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {"embeddings": [[0.1, 0.2, 0.3]]}
        mock_post.return_value = mock_response

        vector = OllamaEmbeddingProvider().embed("File: a.py\n\nx = 1")

        assert vector == [0.1, 0.2, 0.3]
        assert mock_post.call_args.args[0] == "http://localhost:11434/api/embed"
        assert mock_post.call_args.kwargs["json"] == {
            "model": "nomic-embed-text",
            "input": "File: a.py\n\nx = 1",
        }

    @patch("coderevu.llm.ollama.requests.post")
    def test_embed_without_vector(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {"embeddings": []}
        mock_post.return_value = mock_response

        with pytest.raises(RuntimeError, match="no embedding"):
            OllamaEmbeddingProvider().embed("x")

    @patch("coderevu.llm.ollama.requests.post")
    def test_embed_http_error(self, mock_post):
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
        mock_post.return_value = mock_response

        with pytest.raises(RuntimeError, match="Ollama HTTP error"):
            OllamaEmbeddingProvider().embed("x")


# ============================================================================
# Test Review Prompt
# ============================================================================


class TestReviewPrompt:
    """Tests for build_review_prompt."""

    def test_prompt_sections(self):
        for section in (
            "Walkthrough",
            "Sequence Diagram",
            "Summary",
            "Strengths",
            "Issues",
            "Suggestions",
            "Rating",
        ):
            assert f"**{section}**" in REVIEW_PROMPT

    def test_prompt_is_filled(self):
        prompt = build_review_prompt(
            "Add caching", "Speeds up reads", ["File: a.py\n\nA", "File: b.py\n\nB"], "+x = {}"
        )

        assert "PR Title: Add caching" in prompt
        assert "PR Description: Speeds up reads" in prompt
        assert "File: a.py\n\nA\n\nFile: b.py\n\nB" in prompt
        assert "```diff\n+x = {}\n```" in prompt

    def test_missing_description(self):
        prompt = build_review_prompt("T", "", [], "+x")
        assert "PR Description: No description provided" in prompt
