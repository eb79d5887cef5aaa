"""ChromaDB-backed vector database."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import chromadb

from agentkit.errors import CollectionNotFoundError
from agentkit.vector.store import SearchResult, check_lengths, split_content

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (str, int, float, bool)


def _to_chroma_metadata(metadata: dict[str, Any]) -> dict[str, Any] | None:
    """ChromaDB only stores scalar metadata; other values are JSON-encoded."""
    converted: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, _SCALAR_TYPES):
            converted[key] = value
        else:
            converted[f"{key}__json"] = json.dumps(value, ensure_ascii=False)
    return converted or None


def _from_chroma_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    restored: dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if key.endswith("__json") and isinstance(value, str):
            restored[key.removesuffix("__json")] = json.loads(value)
        else:
            restored[key] = value
    return restored


class ChromaDBVectorDatabase:
    """Vector database using ChromaDB collections with a cosine HNSW index.

    Three deployment modes are supported: a remote ChromaDB server
    (``host`` set), an embedded persistent store (``persist_directory`` set)
    or an ephemeral in-process store (neither set, useful for tests).
    ChromaDB's client is synchronous, so every call runs in a worker thread.

    Chunk content is stored as the ChromaDB document; the similarity score
    reported by ``search`` is ``1 - cosine distance``.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int = 8000,
        persist_directory: str | Path | None = None,
    ):
        """Initialize the database handle. No connection is made until ``connect``.

        Args:
            host: ChromaDB server host (None = embedded)
            port: ChromaDB server port
            persist_directory: Directory for embedded persistent storage (None = in-memory)
        """
        self.host = host
        self.port = port
        self.persist_directory = persist_directory
        self.client: Any = None
        self._collections: dict[str, Any] = {}

    def _create_client(self) -> Any:
        if self.host is not None:
            return chromadb.HttpClient(host=self.host, port=self.port)
        if self.persist_directory is None:
            return chromadb.EphemeralClient()

        persist_path = Path(self.persist_directory).expanduser().resolve()
        persist_path.mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=str(persist_path))

    async def connect(self) -> None:
        if self.client is not None:
            return
        self.client = await asyncio.to_thread(self._create_client)
        logger.info("Connected to ChromaDB (%s)", self.host or self.persist_directory or "ephemeral")

    async def disconnect(self) -> None:
        self.client = None
        self._collections.clear()

    def _require_client(self) -> Any:
        if self.client is None:
            msg = "ChromaDB is not connected; call connect() first"
            raise RuntimeError(msg)
        return self.client

    async def _get_collection(self, name: str) -> Any:
        cached = self._collections.get(name)
        if cached is not None:
            return cached

        client = self._require_client()
        try:
            collection = await asyncio.to_thread(client.get_collection, name=name)
        except Exception as e:
            msg = f"Collection {name} does not exist"
            raise CollectionNotFoundError(msg) from e

        self._collections[name] = collection
        return collection

    async def create_collection(self, name: str, dimension: int) -> None:
        if dimension <= 0:
            msg = "dimension must be positive"
            raise ValueError(msg)
        client = self._require_client()

        collection = await asyncio.to_thread(
            client.get_or_create_collection,
            name=name,
            metadata={"hnsw:space": "cosine", "dimension": dimension},
        )
        self._collections[name] = collection
        logger.debug("Ensured collection %s (dim=%d)", name, dimension)

    async def drop_collection(self, name: str) -> None:
        try:
            await self._get_collection(name)
        except CollectionNotFoundError:
            return

        client = self._require_client()
        await asyncio.to_thread(client.delete_collection, name=name)
        self._collections.pop(name, None)

    async def insert_vectors(
        self,
        collection: str,
        ids: list[str],
        vectors: list[list[float]],
        metadata: list[dict[str, Any]],
    ) -> None:
        check_lengths(ids, vectors, metadata)
        target = await self._get_collection(collection)
        if not ids:
            return

        dimension = (target.metadata or {}).get("dimension")
        documents: list[str] = []
        metadatas: list[dict[str, Any] | None] = []
        for chunk_id, vector, meta in zip(ids, vectors, metadata):
            if dimension is not None and len(vector) != dimension:
                msg = f"Vector for {chunk_id} has dimension {len(vector)}, expected {dimension}"
                raise ValueError(msg)
            content, rest = split_content(meta)
            documents.append(content)
            metadatas.append(_to_chroma_metadata(rest))

        await asyncio.to_thread(
            target.upsert,
            ids=ids,
            embeddings=vectors,
            documents=documents,
            metadatas=metadatas,
        )

    async def search(self, collection: str, vector: list[float], top_k: int) -> list[SearchResult]:
        target = await self._get_collection(collection)

        count = await asyncio.to_thread(target.count)
        if count == 0:
            return []
        n_results = count if top_k <= 0 else min(top_k, count)

        results = await asyncio.to_thread(
            target.query,
            query_embeddings=[vector],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

        # ChromaDB returns results in a batched format
        ids = results["ids"][0] if results["ids"] else []
        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []

        hits = [
            SearchResult(
                chunk_id=chunk_id,
                content=document or "",
                score=1.0 - float(distance),
                metadata=_from_chroma_metadata(meta),
            )
            for chunk_id, document, meta, distance in zip(ids, documents, metadatas, distances)
        ]
        hits.sort(key=lambda hit: (-hit.score, hit.chunk_id))
        return hits

    async def delete_vectors(self, collection: str, ids: list[str]) -> None:
        target = await self._get_collection(collection)
        if not ids:
            return
        await asyncio.to_thread(target.delete, ids=ids)
