"""
GitHub Webhook Security

Signature verification and structural validation of GitHub webhook
deliveries. Supports ping, pull_request and push events.
"""

import hmac
import hashlib
import logging
import time
from typing import Any, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ALLOWED_EVENTS = frozenset({"ping", "pull_request", "push"})

# Pull request actions that queue a new review
REVIEW_ACTIONS = frozenset({"opened", "synchronize"})

REPLAY_WINDOW_SECONDS = 5 * 60


# ============================================================================
# GitHub Webhook Payload Models
# ============================================================================


@dataclass
class PullRequestEvent:
    """The parts of a pull_request delivery the dispatcher acts on."""

    action: str
    full_name: str
    owner: str
    repo_name: str
    pr_number: int

    @property
    def triggers_review(self) -> bool:
        return self.action in REVIEW_ACTIONS


# ============================================================================
# Webhook Signature Verification
# ============================================================================


def verify_github_signature(
    payload: bytes, signature_header: Optional[str], webhook_secret: str
) -> bool:
    """
    Verify GitHub webhook signature.

    GitHub sends X-Hub-Signature-256 header with format:
    sha256=<hex_digest>

    Args:
        payload: Raw request body bytes, exactly as received
        signature_header: Value of X-Hub-Signature-256 header (None if absent)
        webhook_secret: Secret configured in GitHub webhook settings

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature_header:
        logger.warning("GitHub webhook: no signature provided")
        return False

    if not webhook_secret:
        logger.error("GitHub webhook: no secret configured")
        return False

    expected_signature = "sha256=" + hmac.new(
        webhook_secret.encode(), payload, hashlib.sha256
    ).hexdigest()

    try:
        # Use constant-time comparison to prevent timing attacks
        valid = hmac.compare_digest(
            signature_header.encode("ascii"), expected_signature.encode("ascii")
        )
    except UnicodeEncodeError:
        logger.warning("GitHub webhook: signature header is not ASCII")
        return False

    if valid:
        logger.debug("GitHub webhook signature verified")
    else:
        logger.warning("GitHub webhook: signature mismatch")
    return valid


def is_replay_attack(
    timestamp: Optional[str], now: Optional[float] = None
) -> bool:
    """
    Check whether a delivery timestamp falls outside the replay window.

    GitHub does not sign a timestamp, so a missing value cannot be judged
    and is accepted. Unparsable values are treated as replays.

    Args:
        timestamp: Unix timestamp (seconds) as a string
        now: Current Unix time, defaults to time.time()

    Returns:
        True if the request is older or newer than five minutes
    """
    if not timestamp:
        return False

    try:
        request_time = int(timestamp)
    except (TypeError, ValueError):
        logger.warning(f"Unparsable webhook timestamp: {timestamp!r}")
        return True

    current_time = int(now if now is not None else time.time())
    return abs(current_time - request_time) > REPLAY_WINDOW_SECONDS


# ============================================================================
# Webhook Event Validation
# ============================================================================


def validate_webhook_event(event_type: Optional[str], payload: Any) -> bool:
    """
    Validate event type and minimal payload shape.

    Args:
        event_type: Value of the X-GitHub-Event header
        payload: Parsed webhook payload

    Returns:
        True if the event is allowed and structurally sound
    """
    if not event_type:
        logger.warning("GitHub webhook: no event type provided")
        return False

    if event_type not in ALLOWED_EVENTS:
        logger.warning(f"GitHub webhook: unexpected event type: {event_type}")
        return False

    if event_type == "pull_request":
        if not isinstance(payload, dict):
            logger.warning("GitHub webhook: pull_request payload is not an object")
            return False

        action = payload.get("action")
        repository = payload.get("repository")
        number = payload.get("number")

        if (
            not isinstance(action, str)
            or not action
            or not isinstance(repository, dict)
            or not isinstance(number, int)
            or isinstance(number, bool)
        ):
            logger.warning("GitHub webhook: invalid pull_request payload structure")
            return False

    return True


# ============================================================================
# Webhook Payload Parsing
# ============================================================================


def parse_pull_request_event(payload: dict) -> PullRequestEvent:
    """
    Extract the review-relevant fields of a validated pull_request payload.

    Args:
        payload: Payload that passed validate_webhook_event

    Returns:
        PullRequestEvent

    Raises:
        ValueError: If repository.full_name is not "owner/name"
    """
    full_name = payload["repository"].get("full_name")
    if not isinstance(full_name, str) or "/" not in full_name:
        raise ValueError(f"Invalid repository full_name: {full_name!r}")

    owner, repo_name = full_name.split("/", 1)
    return PullRequestEvent(
        action=payload["action"],
        full_name=full_name,
        owner=owner,
        repo_name=repo_name,
        pr_number=payload["number"],
    )
