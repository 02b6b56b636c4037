"""
Repository Service - connecting and disconnecting GitHub repositories.

Connecting a repository registers the review webhook on GitHub, stores the
repository, counts it against the user's quota and asks the worker to index
it for review context.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from coderevu.billing.subscription import (
    can_connect_repository,
    decrement_repository_count,
    increment_repository_count,
)
from coderevu.config import Settings
from coderevu.credentials import get_github_token
from coderevu.database import Repository
from coderevu.errors import (
    QuotaExceededError,
    RepositoryAlreadyConnectedError,
    RepositoryNotFoundError,
)
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs.queue import JobQueue
from coderevu.workflows.indexing import REPOSITORY_CONNECTED_EVENT

logger = logging.getLogger(__name__)

# Parallel webhook deletions during disconnect-all
WEBHOOK_DELETE_WORKERS = 8


def connect_repository(
    db: Session,
    queue: JobQueue,
    settings: Settings,
    user_id: str,
    owner: str,
    repo: str,
    github_id: int,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> Repository:
    """
    Connect a GitHub repository for automatic reviews.

    Raises:
        RepositoryAlreadyConnectedError: If github_id is already connected
        QuotaExceededError: If the user's repository limit is reached
        CredentialNotFoundError: If the user has no GitHub token
        GitHubAPIError: If the webhook cannot be registered
    """
    existing = db.query(Repository).filter(Repository.github_id == int(github_id)).first()
    if existing is not None:
        raise RepositoryAlreadyConnectedError(
            f"Repository {existing.full_name} is already connected"
        )

    if not can_connect_repository(db, user_id):
        raise QuotaExceededError(
            "Repository limit reached. Upgrade to PRO for unlimited repositories."
        )

    client = github_client_factory(get_github_token(db, user_id))
    client.create_webhook(owner, repo, settings.webhook_url, settings.github_webhook_secret)

    repository = Repository(
        github_id=int(github_id),
        name=repo,
        owner=owner,
        full_name=f"{owner}/{repo}",
        url=f"https://github.com/{owner}/{repo}",
        user_id=user_id,
    )
    db.add(repository)
    db.commit()

    increment_repository_count(db, user_id)
    logger.info(f"Connected {owner}/{repo} for user {user_id}")

    try:
        queue.send(
            REPOSITORY_CONNECTED_EVENT,
            {"owner": owner, "repo": repo, "userId": user_id},
            db=db,
        )
    except Exception as e:
        # The repository stays connected; reviews just run without context
        db.rollback()
        logger.error(f"Failed to queue indexing of {owner}/{repo}: {str(e)}")

    return repository


def disconnect_repository(
    db: Session,
    settings: Settings,
    user_id: str,
    repository_id: str,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> None:
    """
    Remove the webhook and delete one connected repository with its reviews.

    Raises:
        RepositoryNotFoundError: If the user has no such repository
        CredentialNotFoundError: If the user has no GitHub token
        GitHubAPIError: If GitHub refuses the webhook deletion
    """
    repository = (
        db.query(Repository)
        .filter(Repository.id == repository_id, Repository.user_id == user_id)
        .first()
    )
    if repository is None:
        raise RepositoryNotFoundError(f"Repository {repository_id} not found")

    client = github_client_factory(get_github_token(db, user_id))
    client.delete_webhook(repository.owner, repository.name, settings.webhook_url)

    db.delete(repository)
    db.commit()
    decrement_repository_count(db, user_id)
    logger.info(f"Disconnected {repository.full_name} for user {user_id}")


def disconnect_all_repositories(
    db: Session,
    settings: Settings,
    user_id: str,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> int:
    """
    Disconnect every repository of a user.

    Webhook deletions run in parallel and each failure is logged on its own;
    the repositories are deleted regardless.

    Returns:
        Number of repositories disconnected
    """
    repositories = db.query(Repository).filter(Repository.user_id == user_id).all()
    if not repositories:
        return 0

    client = github_client_factory(get_github_token(db, user_id))
    targets = [(r.owner, r.name, r.full_name) for r in repositories]

    def delete_hook(target):
        owner, name, full_name = target
        try:
            client.delete_webhook(owner, name, settings.webhook_url)
        except Exception as e:
            logger.error(f"Failed to delete webhook for {full_name}: {str(e)}")

    with ThreadPoolExecutor(
        max_workers=min(WEBHOOK_DELETE_WORKERS, len(targets))
    ) as executor:
        list(executor.map(delete_hook, targets))

    for repository in repositories:
        db.delete(repository)
    db.commit()

    count = len(repositories)
    decrement_repository_count(db, user_id, by=count)
    logger.info(f"Disconnected {count} repositories for user {user_id}")
    return count


def list_repositories(
    db: Session,
    user_id: str,
    token: str,
    page: int = 1,
    per_page: int = 10,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> List[Dict[str, Any]]:
    """
    The user's GitHub repositories, each flagged with isConnected.

    Connection is matched on GitHub's numeric repository id.
    """
    github_repos = github_client_factory(token).list_user_repositories(
        page=page, per_page=per_page
    )

    connected_ids = {
        github_id
        for (github_id,) in db.query(Repository.github_id).filter(
            Repository.user_id == user_id
        )
    }

    return [
        {**repo, "isConnected": int(repo["id"]) in connected_ids}
        for repo in github_repos
    ]
