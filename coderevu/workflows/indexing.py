"""
Indexing Workflow

Durable pipeline run for every "repository.connected" event: fetch the
repository's files and embed them into the vector store.
"""

import logging
from typing import Any, Callable, Dict

from coderevu.credentials import get_github_token
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs.runtime import Workflow, WorkflowContext
from coderevu.rag.indexer import CodebaseIndexer

logger = logging.getLogger(__name__)

REPOSITORY_CONNECTED_EVENT = "repository.connected"


class IndexRepositoryWorkflow(Workflow):
    """Indexes a newly connected repository for review context."""

    function_id = "index-repo"
    event_name = REPOSITORY_CONNECTED_EVENT

    def __init__(
        self,
        indexer: CodebaseIndexer,
        github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
    ):
        self.indexer = indexer
        self.github_client_factory = github_client_factory

    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        owner = ctx.data["owner"]
        repo = ctx.data["repo"]
        user_id = ctx.data["userId"]
        repo_id = f"{owner}/{repo}"

        ctx.logger.info(f"[index-repo] Starting indexing for {repo_id} (event {ctx.event_id})")

        def fetch_files():
            token = get_github_token(ctx.db, user_id)
            files = self.github_client_factory(token).list_repo_files(owner, repo)
            ctx.logger.info(f"[index-repo:fetch-files] Fetched {len(files)} files from {repo_id}")
            return files

        files = ctx.step("fetch-files", fetch_files)

        ctx.step(
            "index-codebase",
            lambda: {"vectors": self.indexer.index_codebase(repo_id, files)},
        )

        ctx.logger.info(f"[index-repo] Completed indexing for {repo_id} ({len(files)} files)")
        return {"success": True, "indexedFiles": len(files)}
