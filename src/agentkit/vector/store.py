"""Vector database interface and shared helpers."""

from typing import Any, Protocol

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class SearchResult(BaseModel):
    """One ranked hit of a similarity search. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorDatabase(Protocol):
    """Collection-oriented vector store.

    Implementations must be drop-in substitutable: collections are created
    and dropped idempotently, ``content`` is lifted out of each metadata map
    into its own field without mutating the caller's map, and search results
    are ranked by descending cosine similarity.
    """

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def create_collection(self, name: str, dimension: int) -> None:
        """Create a collection; creating an existing one is a no-op."""
        ...

    async def drop_collection(self, name: str) -> None:
        """Drop a collection; dropping a missing one is a no-op."""
        ...

    async def insert_vectors(
        self,
        collection: str,
        ids: list[str],
        vectors: list[list[float]],
        metadata: list[dict[str, Any]],
    ) -> None:
        """Insert (or overwrite) vectors.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            ValueError: If the three lists differ in length
        """
        ...

    async def search(self, collection: str, vector: list[float], top_k: int) -> list[SearchResult]:
        """Return the ``top_k`` most similar records (all when ``top_k <= 0``).

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        ...

    async def delete_vectors(self, collection: str, ids: list[str]) -> None:
        """Delete records by id; unknown ids are ignored.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        ...


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity, defined as 0 when either vector has zero norm."""
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def split_content(metadata: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Separate ``content`` from a metadata map without mutating it."""
    content = metadata.get("content")
    rest = {key: value for key, value in metadata.items() if key != "content"}
    if isinstance(content, str):
        return content, rest
    if content is not None:
        rest["content"] = content
    return "", rest


def check_lengths(ids: list[str], vectors: list[list[float]], metadata: list[dict[str, Any]]) -> None:
    if not (len(ids) == len(vectors) == len(metadata)):
        msg = "ids, vectors, and metadata must have the same length"
        raise ValueError(msg)
