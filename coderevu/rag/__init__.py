"""
RAG Package

Repository embedding index and context retrieval for reviews.
"""

from coderevu.rag.indexer import CodebaseIndexer, MAX_CONTENT_CHARS, UPSERT_BATCH_SIZE
from coderevu.rag.vector_store import QdrantVectorStore, point_id

__all__ = [
    "CodebaseIndexer",
    "MAX_CONTENT_CHARS",
    "UPSERT_BATCH_SIZE",
    "QdrantVectorStore",
    "point_id",
]
