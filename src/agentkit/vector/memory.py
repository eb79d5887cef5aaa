"""Brute-force in-memory vector database."""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from agentkit.errors import CollectionNotFoundError
from agentkit.vector.store import SearchResult, check_lengths, cosine_similarity, split_content

logger = logging.getLogger(__name__)


@dataclass
class _Record:
    vector: np.ndarray
    content: str
    metadata: dict[str, Any]


@dataclass
class _Collection:
    dimension: int
    records: dict[str, _Record] = field(default_factory=dict)


class InMemoryVectorDatabase:
    """Exact cosine search over vectors held in process memory.

    Every search scores all records of the collection. Equal scores are
    ordered by chunk id, so repeated searches over the same state return the
    same order. Stored metadata is deep-copied in and out.
    """

    def __init__(self) -> None:
        self._collections: dict[str, _Collection] = {}
        self._lock = threading.RLock()

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    async def create_collection(self, name: str, dimension: int) -> None:
        if dimension <= 0:
            msg = "dimension must be positive"
            raise ValueError(msg)
        with self._lock:
            if name in self._collections:
                return
            self._collections[name] = _Collection(dimension=dimension)
        logger.debug("Created collection %s (dim=%d)", name, dimension)

    async def drop_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)

    def has_collection(self, name: str) -> bool:
        with self._lock:
            return name in self._collections

    def count(self, name: str) -> int:
        with self._lock:
            return len(self._get(name).records)

    def _get(self, name: str) -> _Collection:
        collection = self._collections.get(name)
        if collection is None:
            msg = f"Collection {name} does not exist"
            raise CollectionNotFoundError(msg)
        return collection

    async def insert_vectors(
        self,
        collection: str,
        ids: list[str],
        vectors: list[list[float]],
        metadata: list[dict[str, Any]],
    ) -> None:
        check_lengths(ids, vectors, metadata)

        with self._lock:
            target = self._get(collection)
            records: dict[str, _Record] = {}
            for chunk_id, vector, meta in zip(ids, vectors, metadata):
                array = np.asarray(vector, dtype=np.float64)
                if array.shape != (target.dimension,):
                    msg = f"Vector for {chunk_id} has dimension {array.size}, expected {target.dimension}"
                    raise ValueError(msg)
                content, rest = split_content(meta)
                records[chunk_id] = _Record(vector=array, content=content, metadata=copy.deepcopy(rest))
            target.records.update(records)

    async def search(self, collection: str, vector: list[float], top_k: int) -> list[SearchResult]:
        query = np.asarray(vector, dtype=np.float64)

        with self._lock:
            target = self._get(collection)
            if query.shape != (target.dimension,):
                msg = f"Query has dimension {query.size}, expected {target.dimension}"
                raise ValueError(msg)
            scored = [
                (cosine_similarity(query, record.vector), chunk_id, record)
                for chunk_id, record in target.records.items()
            ]

        scored.sort(key=lambda item: (-item[0], item[1]))
        if top_k > 0:
            scored = scored[:top_k]

        return [
            SearchResult(
                chunk_id=chunk_id,
                content=record.content,
                score=score,
                metadata=copy.deepcopy(record.metadata),
            )
            for score, chunk_id, record in scored
        ]

    async def delete_vectors(self, collection: str, ids: list[str]) -> None:
        with self._lock:
            target = self._get(collection)
            for chunk_id in ids:
                target.records.pop(chunk_id, None)
