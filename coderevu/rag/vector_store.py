"""
Qdrant vector store for repository file embeddings.

Every point carries {repoId, path, content} in its payload; searches are
always filtered to a single repoId.
"""

import logging
import uuid
from typing import Any, Dict, List

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from coderevu.config import Settings

logger = logging.getLogger(__name__)


def point_id(repo_id: str, path: str) -> str:
    """Deterministic point id for a file of a repository."""
    source_id = f"{repo_id}-{path.replace('/', '_')}"
    return str(uuid.uuid5(uuid.NAMESPACE_URL, source_id))


class QdrantVectorStore:
    """Thin wrapper over a single Qdrant collection."""

    def __init__(self, client: QdrantClient, collection: str):
        self.client = client
        self.collection = collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "QdrantVectorStore":
        if settings.qdrant_url == ":memory:":
            client = QdrantClient(location=":memory:")
        else:
            client = QdrantClient(
                url=settings.qdrant_url, api_key=settings.qdrant_api_key or None
            )
        return cls(client, settings.qdrant_collection)

    def ensure_collection(self, vector_size: int) -> None:
        """Create the collection with cosine distance if it does not exist."""
        if self.client.collection_exists(self.collection):
            return
        logger.info(
            f"Creating Qdrant collection {self.collection} (size={vector_size})"
        )
        self.client.create_collection(
            collection_name=self.collection,
            vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
        )

    def upsert(self, points: List[Dict[str, Any]]) -> None:
        """
        Insert or overwrite points.

        Args:
            points: [{"id": str, "vector": [float], "metadata": {...}}]
        """
        if not points:
            return
        self.ensure_collection(len(points[0]["vector"]))
        self.client.upsert(
            collection_name=self.collection,
            points=[
                PointStruct(id=p["id"], vector=p["vector"], payload=p["metadata"])
                for p in points
            ],
        )
        logger.debug(f"Upserted {len(points)} vectors into {self.collection}")

    def query(
        self, vector: List[float], top_k: int, repo_id: str
    ) -> List[Dict[str, Any]]:
        """
        Nearest neighbours of vector within one repository.

        Returns:
            Payloads of the matches, best first
        """
        if not self.client.collection_exists(self.collection):
            logger.info(f"Collection {self.collection} does not exist yet")
            return []

        response = self.client.query_points(
            collection_name=self.collection,
            query=vector,
            limit=top_k,
            query_filter=Filter(
                must=[FieldCondition(key="repoId", match=MatchValue(value=repo_id))]
            ),
            with_payload=True,
        )
        return [point.payload or {} for point in response.points]
