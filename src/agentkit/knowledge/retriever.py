"""Query embedding and top-K retrieval against a knowledge base."""

import logging
from typing import Protocol

from pydantic import BaseModel, Field

from agentkit.embeddings.manager import EmbeddingManager, EmbeddingRequest
from agentkit.errors import CollectionNotFoundError, ConfigurationError, EmbeddingError, RetrievalError
from agentkit.knowledge.manager import KnowledgeBaseManager
from agentkit.vector.store import SearchResult, VectorDatabase

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class QueryRequest(BaseModel):
    knowledge_base_id: str
    query: str
    top_k: int = DEFAULT_TOP_K
    min_score: float | None = None


class QueryResponse(BaseModel):
    query: str
    results: list[SearchResult] = Field(default_factory=list)


class Retriever(Protocol):
    async def retrieve(self, request: QueryRequest) -> QueryResponse:
        ...


class VectorRetriever:
    """Embeds the query with the knowledge base's model and searches its collection.

    An empty result list is a successful retrieval.
    """

    def __init__(
        self,
        knowledge_bases: KnowledgeBaseManager,
        embeddings: EmbeddingManager,
        vector_db: VectorDatabase | None = None,
        min_score: float | None = None,
    ):
        self.knowledge_bases = knowledge_bases
        self.embeddings = embeddings
        self.vector_db = vector_db or knowledge_bases.vector_db
        self.min_score = min_score

    async def retrieve(self, request: QueryRequest) -> QueryResponse:
        """Return the most similar chunks for a query.

        ``top_k <= 0`` means the default of 5. A ``min_score`` on the request
        overrides the retriever's threshold.

        Raises:
            KnowledgeBaseNotFoundError: If the knowledge base does not exist
            RetrievalError: If embedding or the vector search fails
        """
        kb = self.knowledge_bases.get_knowledge_base(request.knowledge_base_id)

        try:
            embedded = await self.embeddings.embed(EmbeddingRequest(model=kb.embedding_model, texts=[request.query]))
        except (ConfigurationError, EmbeddingError, ValueError) as e:
            msg = f"Failed to embed query: {e}"
            raise RetrievalError(msg) from e

        top_k = request.top_k if request.top_k > 0 else DEFAULT_TOP_K
        try:
            results = await self.vector_db.search(kb.id, embedded.vectors[0], top_k)
        except (CollectionNotFoundError, ValueError) as e:
            msg = f"Failed to search vectors: {e}"
            raise RetrievalError(msg) from e

        threshold = request.min_score if request.min_score is not None else self.min_score
        if threshold is not None:
            results = [result for result in results if result.score >= threshold]

        logger.debug("Retrieved %d results from %s", len(results), kb.id)
        return QueryResponse(query=request.query, results=results)
