"""
Webhooks Package

Provides GitHub webhook verification, validation and review dispatch.
"""

from coderevu.webhooks.github import (
    verify_github_signature,
    validate_webhook_event,
    parse_pull_request_event,
    is_replay_attack,
    PullRequestEvent,
)
from coderevu.webhooks.dispatcher import ReviewDispatcher

__all__ = [
    "verify_github_signature",
    "validate_webhook_event",
    "parse_pull_request_event",
    "is_replay_attack",
    "PullRequestEvent",
    "ReviewDispatcher",
]
