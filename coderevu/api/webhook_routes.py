"""
GitHub Webhook Endpoint

Receives GitHub deliveries, authenticates them by HMAC signature and hands
review-worthy pull request events to the review dispatcher without waiting
for the review to be queued.
"""

import json
import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from coderevu.webhooks.github import (
    parse_pull_request_event,
    validate_webhook_event,
    verify_github_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/github")
async def github_webhook(request: Request):
    """
    GitHub webhook endpoint.

    Security:
    - Verifies HMAC-SHA256 signature from X-Hub-Signature-256 header over
      the raw body, before anything is parsed
    - Rejects requests with invalid signatures (401 Unauthorized)

    Events handled:
    - ping: answered with Pong
    - pull_request opened/synchronize: review triggered in the background

    Returns:
        200: {"message": "Pong"} or {"message": "Event processed"}
        400: If the event fails structural validation
        401: If signature verification fails
        500: If the webhook secret is not configured or processing fails
    """
    try:
        body = await request.body()
        signature_header = request.headers.get("x-hub-signature-256")
        event_type = request.headers.get("x-github-event")

        settings = request.app.state.settings
        if not settings.github_webhook_secret:
            logger.error("GITHUB_WEBHOOK_SECRET not configured")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook not configured")

        if not verify_github_signature(body, signature_header, settings.github_webhook_secret):
            logger.warning(f"Invalid webhook signature for event {event_type}")
            return _error(status.HTTP_401_UNAUTHORIZED, "Invalid signature")

        payload = json.loads(body)

        if not validate_webhook_event(event_type, payload):
            logger.warning(f"Invalid webhook event: {event_type}")
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid event")

        if event_type == "ping":
            return {"message": "Pong"}

        if event_type == "pull_request":
            pr_event = parse_pull_request_event(payload)
            if pr_event.triggers_review:
                # A failed hand-off is logged only; GitHub must not retry
                try:
                    request.app.state.review_dispatcher.submit(
                        pr_event.owner, pr_event.repo_name, pr_event.pr_number
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to dispatch review for {pr_event.owner}/"
                        f"{pr_event.repo_name}#{pr_event.pr_number}: {str(e)}",
                        exc_info=True,
                    )

        return {"message": "Event processed"}

    except Exception as e:
        logger.error(f"Error processing webhook: {str(e)}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
