"""
Review Service - Review Job Triggering

Entry point between the webhook and the review workflow:
1. Repository lookup
2. Quota check
3. Credential lookup
4. Early PR fetch (validates the PR exists)
5. Queueing of the review job
"""

import logging
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coderevu.billing.subscription import can_create_review
from coderevu.credentials import get_github_token
from coderevu.database import Repository, Review, ReviewStatus
from coderevu.errors import (
    QuotaExceededError,
    RepositoryNotFoundError,
    ReviewTriggerError,
)
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs.queue import JobQueue

logger = logging.getLogger(__name__)

REVIEW_REQUESTED_EVENT = "pr.review.requested"

FAILED_REVIEW_TITLE = "Failed To Fetch PR"


def pull_request_url(owner: str, repo: str, pr_number: int) -> str:
    return f"https://github.com/{owner}/{repo}/pull/{pr_number}"


def find_repository(db: Session, owner: str, repo_name: str) -> Repository:
    """
    Look up a connected repository by owner and name.

    Raises:
        RepositoryNotFoundError: If the repository is not connected
    """
    repository = (
        db.query(Repository)
        .filter(Repository.owner == owner, Repository.name == repo_name)
        .first()
    )
    if repository is None:
        raise RepositoryNotFoundError(f"Repository {owner}/{repo_name} not found")
    return repository


def review_pull_request(
    db: Session,
    queue: JobQueue,
    owner: str,
    repo_name: str,
    pr_number: int,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> dict:
    """
    Queue an AI review of a pull request.

    On failure a failed Review record is written (best effort) before the
    error is re-raised.

    Args:
        db: Database session
        queue: Durable job queue
        owner: Repository owner
        repo_name: Repository name
        pr_number: Pull request number
        github_client_factory: Builds a GitHub client from a token

    Returns:
        {"success": True, "message": "Review Queued"}

    Raises:
        RepositoryNotFoundError: If the repository is not connected
        QuotaExceededError: If the owner's review quota is used up
        CredentialNotFoundError: If the owner has no GitHub token
        GitHubAPIError: If the pull request cannot be fetched
        ReviewTriggerError: If the review event cannot be stored
    """
    try:
        repository = find_repository(db, owner, repo_name)
        user_id = repository.user_id

        if not can_create_review(db, user_id, repository.id):
            raise QuotaExceededError(
                f"Review limit reached for {owner}/{repo_name}. Upgrade to PRO for unlimited reviews."
            )

        token = get_github_token(db, user_id)

        # Fails early if the PR is gone or GitHub is unreachable
        pull_request = github_client_factory(token).get_pull_request_diff(
            owner, repo_name, pr_number
        )
        logger.debug(f"Fetched PR {owner}/{repo_name}#{pr_number}: {pull_request['title']}")

        try:
            event_id = queue.send(
                REVIEW_REQUESTED_EVENT,
                {
                    "owner": owner,
                    "repo": repo_name,
                    "prNumber": pr_number,
                    "userId": user_id,
                    "repositoryId": repository.id,
                },
                dedup_key=f"pr-review:{repository.id}:{pr_number}",
                db=db,
            )
        except SQLAlchemyError as e:
            raise ReviewTriggerError(f"Failed to queue review: {str(e)}") from e

        logger.info(f"Queued review of {owner}/{repo_name}#{pr_number} (event {event_id})")
        return {"success": True, "message": "Review Queued"}

    except Exception as e:
        logger.error(f"Failed to queue review of {owner}/{repo_name}#{pr_number}: {str(e)}")
        _record_failed_review(db, owner, repo_name, pr_number, e)
        raise


def _record_failed_review(
    db: Session, owner: str, repo_name: str, pr_number: int, error: Exception
) -> None:
    """Persist a failed Review for the dashboard; never raises."""
    try:
        db.rollback()
        repository = (
            db.query(Repository)
            .filter(Repository.owner == owner, Repository.name == repo_name)
            .first()
        )
        if repository is None:
            return

        db.add(
            Review(
                repository_id=repository.id,
                pr_number=pr_number,
                pr_title=FAILED_REVIEW_TITLE,
                pr_url=pull_request_url(owner, repo_name, pr_number),
                review=f"Error: {str(error) or 'Unknown Error'}",
                status=ReviewStatus.FAILED,
            )
        )
        db.commit()
    except Exception as db_error:
        logger.error(f"Failed to save error to database: {str(db_error)}")
        db.rollback()


def get_reviews(db: Session, user_id: str, limit: int = 50) -> List[Review]:
    """Latest reviews across all repositories of a user, newest first."""
    reviews = (
        db.query(Review)
        .join(Repository, Review.repository_id == Repository.id)
        .filter(Repository.user_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
        .all()
    )
    logger.info(f"Fetched {len(reviews)} reviews for user {user_id}")
    return reviews
