"""
CodeRevU - FastAPI Application

Main entry point for the AI pull request review service.

The application owns one Settings object and builds every long-lived
component from it: database, job queue, review dispatcher and, when enabled,
the in-process workflow worker.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from coderevu.api import user_router, webhook_router
from coderevu.config import Settings, configure_logging
from coderevu.database import Database
from coderevu.integrations.github_api import GitHubAPIClient
from coderevu.jobs import JobQueue, WorkflowRuntime
from coderevu.jobs.scheduler import JobScheduler
from coderevu.llm.provider import get_embedding_provider, get_llm_provider
from coderevu.rag import CodebaseIndexer, QdrantVectorStore
from coderevu.webhooks import ReviewDispatcher
from coderevu.workflows import GenerateReviewWorkflow, IndexRepositoryWorkflow

logger = logging.getLogger(__name__)


def build_runtime(
    settings: Settings,
    database: Database,
    queue: JobQueue,
    github_client_factory: Callable[[str], GitHubAPIClient] = GitHubAPIClient,
) -> WorkflowRuntime:
    """Build the workflow runtime with the review and indexing workflows."""
    indexer = CodebaseIndexer(
        get_embedding_provider(settings), QdrantVectorStore.from_settings(settings)
    )

    runtime = WorkflowRuntime(database, queue)
    runtime.register(
        GenerateReviewWorkflow(
            llm=get_llm_provider(settings),
            indexer=indexer,
            github_client_factory=github_client_factory,
            context_top_k=settings.context_top_k,
            concurrency=settings.review_concurrency,
        )
    )
    runtime.register(
        IndexRepositoryWorkflow(indexer=indexer, github_client_factory=github_client_factory)
    )
    return runtime


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration; loaded from environment and .env if omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    database = Database.from_settings(settings)
    database.init_db()

    queue = JobQueue(database, max_attempts=settings.job_max_attempts)

    def github_client(token: str) -> GitHubAPIClient:
        # Resolved per call so app.state.github_client_factory can be swapped
        return app.state.github_client_factory(token)

    dispatcher = ReviewDispatcher(database, queue, github_client_factory=github_client)

    scheduler = None
    runtime = None
    if settings.worker_enabled:
        runtime = build_runtime(settings, database, queue, github_client)
        scheduler = JobScheduler(
            runtime, poll_interval_seconds=settings.worker_poll_interval_seconds
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.stop()
            runtime.shutdown(wait=False)
        dispatcher.shutdown(wait=False)

    app = FastAPI(
        title="CodeRevU",
        description="AI pull request reviews with repository context",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.job_queue = queue
    app.state.github_client_factory = GitHubAPIClient
    app.state.review_dispatcher = dispatcher
    app.state.runtime = runtime
    app.state.scheduler = scheduler

    app.include_router(webhook_router)
    app.include_router(user_router)

    @app.get("/health")
    async def health():
        """
        Health check endpoint.

        Returns:
            dict: Status indicator showing the service is healthy
        """
        return {"status": "healthy"}

    logger.info(
        f"CodeRevU app created (llm={settings.llm_provider}, worker={settings.worker_enabled})"
    )
    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
