"""
Review Generation Workflow

Durable pipeline run for every "pr.review.requested" event:
1. fetch-pr-data          diff, title and description from GitHub
2. retrieve-context       similar snippets from the repository index
3. generate-ai-review     LLM review in markdown
4. post-comment           review posted on the PR
5. save-review            completed Review record
6. increment-review-count usage counter (best effort)

A retry after post-comment replays the memoized comment id instead of
posting again.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from coderevu.billing.subscription import increment_review_count
from coderevu.credentials import get_github_token
from coderevu.database import Repository, Review, ReviewStatus
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs.runtime import Workflow, WorkflowContext
from coderevu.llm.prompts import build_review_prompt
from coderevu.llm.provider import LLMProvider
from coderevu.rag.indexer import CodebaseIndexer
from coderevu.review_service import REVIEW_REQUESTED_EVENT, pull_request_url

logger = logging.getLogger(__name__)


class GenerateReviewWorkflow(Workflow):
    """Generates and posts an AI review for one pull request."""

    function_id = "generate-review"
    event_name = REVIEW_REQUESTED_EVENT

    def __init__(
        self,
        llm: LLMProvider,
        indexer: CodebaseIndexer,
        github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
        context_top_k: int = 5,
        concurrency: Optional[int] = 5,
    ):
        self.llm = llm
        self.indexer = indexer
        self.github_client_factory = github_client_factory
        self.context_top_k = context_top_k
        self.concurrency = concurrency

    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        owner = ctx.data["owner"]
        repo = ctx.data["repo"]
        pr_number = ctx.data["prNumber"]
        user_id = ctx.data["userId"]
        repository_id = ctx.data.get("repositoryId")

        pr_data = ctx.step(
            "fetch-pr-data",
            lambda: self._github(ctx.db, user_id).get_pull_request_diff(
                owner, repo, pr_number
            ),
        )
        title = pr_data["title"]
        description = pr_data["description"]

        context = ctx.step(
            "retrieve-context",
            lambda: self.indexer.retrieve_context(
                f"{title}\n{description}", f"{owner}/{repo}", top_k=self.context_top_k
            ),
        )

        review = ctx.step(
            "generate-ai-review",
            lambda: self.llm.generate(
                build_review_prompt(title, description, context, pr_data["diff"])
            ),
        )

        ctx.step(
            "post-comment",
            lambda: {
                "commentId": self._github(ctx.db, user_id)
                .post_review_comment(owner, repo, pr_number, review)
                .get("id")
            },
        )

        saved = ctx.step(
            "save-review",
            lambda: self._save_review(ctx.db, owner, repo, pr_number, title, review),
        )

        counted_repository_id = repository_id or saved.get("repositoryId")
        outcome = ctx.best_effort_step(
            "increment-review-count",
            lambda: self._increment_review_count(ctx.db, user_id, counted_repository_id),
        )
        if outcome.ok:
            ctx.logger.info(f"Review count incremented for user {user_id}")
        else:
            ctx.logger.error(
                f"Review was posted for {owner}/{repo}#{pr_number} but credit tracking "
                f"failed for user {user_id}; manual adjustment may be needed"
            )

        return {"success": True}

    def _github(self, db: Session, user_id: str) -> GitHubAPIClient:
        return self.github_client_factory(get_github_token(db, user_id))

    @staticmethod
    def _save_review(
        db: Session, owner: str, repo: str, pr_number: int, title: str, review: str
    ) -> Dict[str, Any]:
        repository = (
            db.query(Repository)
            .filter(Repository.owner == owner, Repository.name == repo)
            .first()
        )
        if repository is None:
            logger.warning(
                f"Repository {owner}/{repo} no longer connected; review not saved"
            )
            return {"saved": False, "repositoryId": None}

        record = Review(
            repository_id=repository.id,
            pr_number=pr_number,
            pr_title=title,
            pr_url=pull_request_url(owner, repo, pr_number),
            review=review,
            status=ReviewStatus.COMPLETED,
        )
        db.add(record)
        db.commit()
        return {"saved": True, "reviewId": record.id, "repositoryId": repository.id}

    @staticmethod
    def _increment_review_count(
        db: Session, user_id: str, repository_id: Optional[str]
    ) -> None:
        if not repository_id:
            raise ValueError("No repository id to count the review against")
        increment_review_count(db, user_id, repository_id)
