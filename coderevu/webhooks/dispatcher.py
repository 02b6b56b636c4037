"""
Review Dispatcher

Hands review triggers off the webhook request path to a small worker pool.
The webhook response never waits on the trigger; outcomes are reported on
the pool's own channel (logging).
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from coderevu.database import Database
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs.queue import JobQueue
from coderevu.review_service import review_pull_request

logger = logging.getLogger(__name__)


class ReviewDispatcher:
    """
    Fire-and-forget executor for review_pull_request.

    Each submission runs in its own database session. Errors are caught by
    the done-callback and logged, never propagated to the submitter.
    """

    def __init__(
        self,
        database: Database,
        queue: JobQueue,
        max_workers: int = 4,
        trigger: Optional[Callable] = None,
        github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
    ):
        self.database = database
        self.queue = queue
        self.trigger = trigger or review_pull_request
        self.github_client_factory = github_client_factory
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="review-dispatch"
        )

    def submit(self, owner: str, repo_name: str, pr_number: int) -> Future:
        """Queue a review trigger for a pull request and return immediately."""
        label = f"{owner}/{repo_name} #{pr_number}"
        logger.info(f"Triggering review for {label}")

        future = self.executor.submit(self._run, owner, repo_name, pr_number)
        future.add_done_callback(lambda f: self._report(f, label))
        return future

    def _run(self, owner: str, repo_name: str, pr_number: int) -> dict:
        db = self.database.session()
        try:
            return self.trigger(
                db,
                self.queue,
                owner,
                repo_name,
                pr_number,
                github_client_factory=self.github_client_factory,
            )
        finally:
            db.close()

    @staticmethod
    def _report(future: Future, label: str) -> None:
        if future.cancelled():
            logger.warning(f"Review trigger cancelled for {label}")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Review failed for {label}: {error}")
        else:
            logger.info(f"Review queued for {label}")

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
