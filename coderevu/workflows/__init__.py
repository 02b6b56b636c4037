"""
Workflows Package

Durable review-generation and repository-indexing workflows.
"""

from coderevu.workflows.indexing import IndexRepositoryWorkflow, REPOSITORY_CONNECTED_EVENT
from coderevu.workflows.review import GenerateReviewWorkflow

__all__ = [
    "GenerateReviewWorkflow",
    "IndexRepositoryWorkflow",
    "REPOSITORY_CONNECTED_EVENT",
]
