"""
Claude review writer backed by the Anthropic Messages API.
"""

import logging

from anthropic import Anthropic, APIError, APITimeoutError

from coderevu.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class ClaudeProvider(LLMProvider):
    """Sends the review prompt as a single user message to a Claude model."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        timeout: int = 120,
        max_tokens: int = 4096,
    ):
        """
        Args:
            api_key: Anthropic API key
            model: Claude model ID
            timeout: Seconds to wait for a completion
            max_tokens: Upper bound on generated tokens
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.client = Anthropic(api_key=api_key)

    def generate(self, prompt: str) -> str:
        """
        Raises:
            TimeoutError: If Claude does not answer within self.timeout
            RuntimeError: On API errors or an answer without text
        """
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout,
            )
        except APITimeoutError as e:
            logger.error(f"No answer from {self.model} within {self.timeout}s: {str(e)}")
            raise TimeoutError(f"Claude generation timed out: {str(e)}")
        except APIError as e:
            logger.error(f"Claude request for {self.model} failed: {str(e)}")
            raise RuntimeError(f"Claude API error: {str(e)}")

        if not message.content:
            raise RuntimeError("Claude returned empty response")

        review = message.content[0].text
        logger.debug(f"Claude wrote {len(review)} characters of review")
        return review
