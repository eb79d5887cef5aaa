"""Knowledge bases: document chunking, ingestion, retrieval and RAG.

Usage::

    from agentkit.embeddings import EmbeddingManager, HashingEmbedding
    from agentkit.knowledge import KnowledgeBaseManager, VectorRetriever, apply_rag
    from agentkit.vector import InMemoryVectorDatabase

    embeddings = EmbeddingManager()
    model_name = embeddings.register_model(HashingEmbedding())
    manager = KnowledgeBaseManager(InMemoryVectorDatabase(), embeddings)
    kb = await manager.create_knowledge_base("docs", model_name)
    await manager.add_text_document(kb.id, "sky.txt", "The sky is blue.")
    answer = await apply_rag(VectorRetriever(manager, embeddings), kb.id, "What color is the sky?", agent)
"""

from agentkit.knowledge.manager import KnowledgeBaseManager
from agentkit.knowledge.processor import (
    BasicTextProcessor,
    ProcessorRegistry,
    default_processor_registry,
    document_type_from_filename,
    get_last_words,
)
from agentkit.knowledge.rag import apply_rag, generate_prompt_from_results, register_knowledge_search_tool
from agentkit.knowledge.retriever import QueryRequest, QueryResponse, Retriever, VectorRetriever
from agentkit.knowledge.schema import Chunk, ChunkMetadata, Document, DocumentType, KnowledgeBase

__all__ = [
    "BasicTextProcessor",
    "Chunk",
    "ChunkMetadata",
    "Document",
    "DocumentType",
    "KnowledgeBase",
    "KnowledgeBaseManager",
    "ProcessorRegistry",
    "QueryRequest",
    "QueryResponse",
    "Retriever",
    "VectorRetriever",
    "apply_rag",
    "default_processor_registry",
    "document_type_from_filename",
    "generate_prompt_from_results",
    "get_last_words",
    "register_knowledge_search_tool",
]
