"""
Integrations Package

Provides integrations with external services (GitHub).
"""

from coderevu.integrations.github_api import (
    GitHubAPIClient,
    GitHubNotFoundError,
    GitHubAPIError,
    RateLimitError,
)

__all__ = [
    "GitHubAPIClient",
    "GitHubNotFoundError",
    "GitHubAPIError",
    "RateLimitError",
]
