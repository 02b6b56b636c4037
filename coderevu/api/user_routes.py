"""
User REST API Endpoints

Dashboard endpoints for a user's reviews, usage limits and connected
repositories.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from coderevu.billing.subscription import get_remaining_limits
from coderevu.credentials import get_github_token
from coderevu.database import get_db
from coderevu.errors import (
    CredentialNotFoundError,
    QuotaExceededError,
    RepositoryAlreadyConnectedError,
    RepositoryNotFoundError,
)
from coderevu.integrations.github_api import GitHubAPIError
from coderevu.repository_service import (
    connect_repository,
    disconnect_all_repositories,
    disconnect_repository,
    list_repositories,
)
from coderevu.review_service import get_reviews

router = APIRouter(prefix="/api/users/{user_id}", tags=["users"])


class ConnectRepositoryRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    github_id: int


def _serialize_review(review) -> dict:
    return {
        "id": review.id,
        "repositoryId": review.repository_id,
        "repository": review.repository.full_name if review.repository else None,
        "prNumber": review.pr_number,
        "prTitle": review.pr_title,
        "prUrl": review.pr_url,
        "review": review.review,
        "status": review.status.value,
        "createdAt": review.created_at.isoformat(),
    }


@router.get("/reviews")
async def list_reviews(user_id: str, db: Session = Depends(get_db)):
    """Latest 50 reviews across the user's repositories, newest first."""
    return [_serialize_review(r) for r in get_reviews(db, user_id)]


@router.get("/limits")
async def get_limits(user_id: str, db: Session = Depends(get_db)):
    """
    Get remaining usage limits.

    Returns:
    - tier: FREE or PRO
    - repositories: current count, limit (null = unlimited), canAdd
    - reviews: per repository id, current count, limit, canAdd
    """
    return get_remaining_limits(db, user_id)


@router.get("/repositories")
def get_repositories(
    user_id: str,
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(10, ge=1, le=100, description="Repositories per page"),
    db: Session = Depends(get_db),
):
    """The user's GitHub repositories with isConnected flags."""
    try:
        token = get_github_token(db, user_id)
        return list_repositories(
            db,
            user_id,
            token,
            page=page,
            per_page=per_page,
            github_client_factory=request.app.state.github_client_factory,
        )
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except GitHubAPIError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error fetching repositories: {str(e)}",
        )


@router.post("/repositories", status_code=status.HTTP_201_CREATED)
def connect(
    user_id: str,
    body: ConnectRepositoryRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Connect a repository: register the webhook and queue indexing."""
    try:
        repository = connect_repository(
            db,
            request.app.state.job_queue,
            request.app.state.settings,
            user_id,
            body.owner,
            body.repo,
            body.github_id,
            github_client_factory=request.app.state.github_client_factory,
        )
    except RepositoryAlreadyConnectedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except QuotaExceededError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except GitHubAPIError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error creating webhook: {str(e)}",
        )

    return {
        "id": repository.id,
        "githubId": repository.github_id,
        "fullName": repository.full_name,
        "url": repository.url,
    }


@router.delete("/repositories/{repository_id}")
def disconnect(
    user_id: str,
    repository_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    """Disconnect one repository."""
    try:
        disconnect_repository(
            db,
            request.app.state.settings,
            user_id,
            repository_id,
            github_client_factory=request.app.state.github_client_factory,
        )
    except (RepositoryNotFoundError, CredentialNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except GitHubAPIError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error deleting webhook: {str(e)}",
        )
    return {"success": True}


@router.delete("/repositories")
def disconnect_all(user_id: str, request: Request, db: Session = Depends(get_db)):
    """Disconnect every repository of the user."""
    try:
        count = disconnect_all_repositories(
            db,
            request.app.state.settings,
            user_id,
            github_client_factory=request.app.state.github_client_factory,
        )
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"success": True, "count": count}
