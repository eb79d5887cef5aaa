"""Knowledge base registry and document ingestion."""

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from agentkit.embeddings.manager import EmbeddingManager, EmbeddingRequest
from agentkit.errors import (
    DocumentNotFoundError,
    IngestionError,
    KnowledgeBaseNotFoundError,
)
from agentkit.knowledge.processor import ProcessorRegistry, default_processor_registry, document_type_from_filename
from agentkit.knowledge.schema import Chunk, Document, DocumentType, KnowledgeBase
from agentkit.vector.store import VectorDatabase

logger = logging.getLogger(__name__)

_TEXT_TYPES = (DocumentType.TEXT, DocumentType.MARKDOWN, DocumentType.HTML)


def _chunk_metadata(chunk: Chunk) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "content": chunk.content,
        "document_id": chunk.document_id,
        "chunk_index": chunk.metadata.chunk_index,
        "source": chunk.metadata.source,
    }
    if chunk.metadata.page_number is not None:
        metadata["page_number"] = chunk.metadata.page_number
    return metadata


class KnowledgeBaseManager:
    """Owns knowledge bases and coordinates ingestion.

    Ingestion runs processor, then embedding, then vector insert. The
    knowledge base counters and document list change only once all three
    have succeeded. The chunk ids of every document are tracked so that
    deleting a document removes exactly its vectors.
    """

    def __init__(
        self,
        vector_db: VectorDatabase,
        embeddings: EmbeddingManager,
        processors: ProcessorRegistry | None = None,
    ):
        self.vector_db = vector_db
        self.embeddings = embeddings
        self.processors = processors or default_processor_registry()
        self._knowledge_bases: dict[str, KnowledgeBase] = {}
        self._documents: dict[str, list[Document]] = {}
        self._chunk_ids: dict[str, list[str]] = {}
        self._lock = threading.RLock()

    # Knowledge bases

    async def create_knowledge_base(
        self,
        name: str,
        embedding_model: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> KnowledgeBase:
        """Create a knowledge base and its vector collection.

        Args:
            name: Display name
            embedding_model: Name of a model registered with the embedding manager
            description: Free-text description
            metadata: Free-form metadata

        Raises:
            ValueError: If the name is empty
            ConfigurationError: If the embedding model is unknown
        """
        if not name:
            msg = "knowledge base name must not be empty"
            raise ValueError(msg)

        model = self.embeddings.get_model(embedding_model)
        kb = KnowledgeBase(
            name=name,
            description=description,
            embedding_model=embedding_model,
            metadata=dict(metadata or {}),
        )
        await self.vector_db.create_collection(kb.id, model.dimension)

        with self._lock:
            self._knowledge_bases[kb.id] = kb
            self._documents[kb.id] = []

        logger.info("Created knowledge base %s (%s, model=%s)", kb.name, kb.id, embedding_model)
        return kb

    def get_knowledge_base(self, knowledge_base_id: str) -> KnowledgeBase:
        """Look up a knowledge base.

        Raises:
            KnowledgeBaseNotFoundError: If the id is unknown
        """
        with self._lock:
            kb = self._knowledge_bases.get(knowledge_base_id)
        if kb is None:
            msg = f"Knowledge base not found: {knowledge_base_id}"
            raise KnowledgeBaseNotFoundError(msg)
        return kb

    def list_knowledge_bases(self) -> list[KnowledgeBase]:
        with self._lock:
            return sorted(self._knowledge_bases.values(), key=lambda kb: kb.created_at)

    def update_knowledge_base(
        self,
        knowledge_base_id: str,
        name: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> KnowledgeBase:
        """Update name, description or metadata; empty values leave fields unchanged."""
        with self._lock:
            kb = self.get_knowledge_base(knowledge_base_id)
            if name:
                kb.name = name
            if description:
                kb.description = description
            if metadata is not None:
                kb.metadata = dict(metadata)
            kb.updated_at = datetime.now(timezone.utc)
            return kb

    async def delete_knowledge_base(self, knowledge_base_id: str) -> None:
        """Delete a knowledge base, its documents and its vector collection."""
        self.get_knowledge_base(knowledge_base_id)
        await self.vector_db.drop_collection(knowledge_base_id)

        with self._lock:
            self._knowledge_bases.pop(knowledge_base_id, None)
            for document in self._documents.pop(knowledge_base_id, []):
                self._chunk_ids.pop(document.id, None)

        logger.info("Deleted knowledge base %s", knowledge_base_id)

    # Documents

    async def add_document(self, knowledge_base_id: str, filename: str, data: bytes) -> Document:
        """Ingest a file; its type is inferred from the extension.

        Raises:
            KnowledgeBaseNotFoundError: If the knowledge base does not exist
            IngestionError: If processing, embedding or storage fails
        """
        self.get_knowledge_base(knowledge_base_id)
        doc_type = document_type_from_filename(filename)
        document = Document(
            knowledge_base_id=knowledge_base_id,
            name=filename,
            type=doc_type,
            size=len(data),
            content=data.decode("utf-8", errors="replace") if doc_type in _TEXT_TYPES else "",
            data=data,
        )
        return await self._ingest(document)

    async def add_text_document(
        self,
        knowledge_base_id: str,
        name: str,
        content: str,
        doc_type: DocumentType = DocumentType.TEXT,
    ) -> Document:
        """Ingest text given directly.

        Raises:
            KnowledgeBaseNotFoundError: If the knowledge base does not exist
            IngestionError: If processing, embedding or storage fails
        """
        self.get_knowledge_base(knowledge_base_id)
        document = Document(
            knowledge_base_id=knowledge_base_id,
            name=name,
            type=doc_type,
            size=len(content.encode("utf-8")),
            content=content,
        )
        return await self._ingest(document)

    async def _ingest(self, document: Document) -> Document:
        kb = self.get_knowledge_base(document.knowledge_base_id)

        try:
            chunks = self.processors.process(document)
        except Exception as e:
            msg = f"Failed to process document {document.name}: {e}"
            raise IngestionError(msg) from e

        if not chunks:
            msg = f"Document processing resulted in no chunks: {document.name}"
            raise IngestionError(msg)

        try:
            response = await self.embeddings.embed(
                EmbeddingRequest(model=kb.embedding_model, texts=[chunk.content for chunk in chunks])
            )
        except Exception as e:
            msg = f"Failed to generate embeddings for {document.name}: {e}"
            raise IngestionError(msg) from e

        ids = [chunk.id for chunk in chunks]
        for chunk, vector in zip(chunks, response.vectors):
            chunk.vector = vector

        try:
            await self.vector_db.insert_vectors(
                kb.id,
                ids,
                response.vectors,
                [_chunk_metadata(chunk) for chunk in chunks],
            )
        except Exception as e:
            await self._discard_vectors(kb.id, ids)
            msg = f"Failed to insert vectors for {document.name}: {e}"
            raise IngestionError(msg) from e

        with self._lock:
            if kb.id not in self._knowledge_bases:
                msg = f"Knowledge base {kb.id} was deleted during ingestion"
                raise IngestionError(msg)
            kb.document_count += 1
            kb.chunk_count += len(chunks)
            kb.updated_at = datetime.now(timezone.utc)
            self._documents[kb.id].append(document)
            self._chunk_ids[document.id] = ids

        logger.info("Ingested %s into %s (%d chunks)", document.name, kb.id, len(chunks))
        return document

    async def _discard_vectors(self, collection: str, ids: list[str]) -> None:
        try:
            await self.vector_db.delete_vectors(collection, ids)
        except Exception:
            logger.warning("Could not remove %d vectors from %s after a failed insert", len(ids), collection, exc_info=True)

    def get_documents(self, knowledge_base_id: str) -> list[Document]:
        """Return a copy of the knowledge base's document list."""
        with self._lock:
            self.get_knowledge_base(knowledge_base_id)
            return list(self._documents.get(knowledge_base_id, []))

    def get_chunk_ids(self, document_id: str) -> list[str]:
        """Return the vector ids stored for a document.

        Raises:
            DocumentNotFoundError: If the document is unknown
        """
        with self._lock:
            ids = self._chunk_ids.get(document_id)
        if ids is None:
            msg = f"Document not found: {document_id}"
            raise DocumentNotFoundError(msg)
        return list(ids)

    def _find_document(self, knowledge_base_id: str, document_id: str) -> Document:
        for document in self._documents.get(knowledge_base_id, []):
            if document.id == document_id:
                return document
        msg = f"Document not found: {document_id}"
        raise DocumentNotFoundError(msg)

    async def delete_document(self, knowledge_base_id: str, document_id: str) -> None:
        """Delete a document and exactly the vectors of its chunks.

        Raises:
            KnowledgeBaseNotFoundError: If the knowledge base does not exist
            DocumentNotFoundError: If the document is not in the knowledge base
        """
        with self._lock:
            self.get_knowledge_base(knowledge_base_id)
            self._find_document(knowledge_base_id, document_id)
            chunk_ids = list(self._chunk_ids.get(document_id, []))

        if chunk_ids:
            await self.vector_db.delete_vectors(knowledge_base_id, chunk_ids)

        with self._lock:
            kb = self.get_knowledge_base(knowledge_base_id)
            document = self._find_document(knowledge_base_id, document_id)
            self._documents[knowledge_base_id].remove(document)
            self._chunk_ids.pop(document_id, None)
            kb.document_count -= 1
            kb.chunk_count -= len(chunk_ids)
            kb.updated_at = datetime.now(timezone.utc)

        logger.info("Deleted document %s from %s (%d chunks)", document_id, knowledge_base_id, len(chunk_ids))
