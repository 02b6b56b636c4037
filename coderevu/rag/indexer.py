"""
Codebase indexing and context retrieval.

text -> embedding -> vector store, and back: query -> embedding ->
similarity search -> top-K file snippets.
"""

import logging
from typing import Dict, List

from coderevu.llm.provider import EmbeddingProvider
from coderevu.rag.vector_store import QdrantVectorStore, point_id

logger = logging.getLogger(__name__)

# Embedding input budget per file, in characters
MAX_CONTENT_CHARS = 8000

# Points per upsert request
UPSERT_BATCH_SIZE = 100


class CodebaseIndexer:
    """Embeds repository files into the vector store and retrieves them."""

    def __init__(self, embedder: EmbeddingProvider, vector_store: QdrantVectorStore):
        self.embedder = embedder
        self.vector_store = vector_store

    def generate_embedding(self, text: str) -> List[float]:
        return self.embedder.embed(text)

    def index_codebase(self, repo_id: str, files: List[Dict[str, str]]) -> int:
        """
        Embed and upsert the files of a repository.

        Files whose embedding fails are logged and skipped.

        Args:
            repo_id: "owner/repo"
            files: [{"path": str, "content": str}]

        Returns:
            Number of vectors upserted
        """
        vectors = []
        for file in files:
            content = f"File: {file['path']}\n\n{file['content']}"
            truncated_content = content[:MAX_CONTENT_CHARS]

            try:
                embedding = self.generate_embedding(truncated_content)
            except Exception as e:
                logger.error(f"Failed to embed {file['path']}: {str(e)}")
                continue

            vectors.append(
                {
                    "id": point_id(repo_id, file["path"]),
                    "vector": embedding,
                    "metadata": {
                        "repoId": repo_id,
                        "path": file["path"],
                        "content": truncated_content,
                    },
                }
            )

        for start in range(0, len(vectors), UPSERT_BATCH_SIZE):
            self.vector_store.upsert(vectors[start:start + UPSERT_BATCH_SIZE])

        logger.info(
            f"Indexed {len(vectors)}/{len(files)} files for {repo_id}"
        )
        return len(vectors)

    def retrieve_context(self, query: str, repo_id: str, top_k: int = 5) -> List[str]:
        """
        Retrieve the file snippets most similar to a query.

        Returns:
            Snippet texts, best match first; matches without content are dropped
        """
        embedding = self.generate_embedding(query)
        matches = self.vector_store.query(embedding, top_k=top_k, repo_id=repo_id)
        return [match["content"] for match in matches if match.get("content")]
