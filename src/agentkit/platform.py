"""Explicit construction of all agentkit components from configuration.

``build_platform`` wires registries and managers together once; callers
pass the resulting ``Platform`` (or its parts) wherever they are needed.
Nothing in agentkit is a process-wide singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agentkit.agent.conversation import ConversationManager
from agentkit.agent.factory import AgentFactory, ConfigCredentialProvider, CredentialProvider
from agentkit.config.schema import EmbeddingConfig, PlatformConfig, VectorStoreConfig
from agentkit.embeddings.hashing import HashingEmbedding
from agentkit.embeddings.manager import EmbeddingManager
from agentkit.knowledge.manager import KnowledgeBaseManager
from agentkit.knowledge.processor import default_processor_registry
from agentkit.knowledge.rag import register_knowledge_search_tool
from agentkit.knowledge.retriever import VectorRetriever
from agentkit.llm.providers import ProviderRegistry, default_provider_registry
from agentkit.tools.builtin import SearchFunction, WeatherLookup, register_builtin_tools
from agentkit.tools.registry import ToolRegistry
from agentkit.vector.memory import InMemoryVectorDatabase

if TYPE_CHECKING:
    from agentkit.embeddings.client import EmbeddingModel
    from agentkit.vector.store import VectorDatabase

logger = logging.getLogger(__name__)


def create_embedding_model(config: EmbeddingConfig) -> EmbeddingModel:
    """Create the embedding model selected by ``config.backend``."""
    if config.backend == "sentence-transformers":
        from agentkit.embeddings.sentence_transformer import DEFAULT_MODEL, SentenceTransformerEmbedding

        return SentenceTransformerEmbedding(model_name=config.model or DEFAULT_MODEL, device=config.device)

    if config.backend == "ollama":
        from agentkit.embeddings.ollama import OllamaEmbedding

        return OllamaEmbedding(model=config.model or "nomic-embed-text", host=config.ollama_host)

    return HashingEmbedding(dimension=config.dimension, model_name=config.model)


def create_vector_database(config: VectorStoreConfig) -> VectorDatabase:
    """Create the vector database selected by ``config.backend``."""
    if config.backend == "chromadb":
        from agentkit.vector.chromadb import ChromaDBVectorDatabase

        return ChromaDBVectorDatabase(
            host=config.host,
            port=config.port,
            persist_directory=config.persist_directory,
        )
    return InMemoryVectorDatabase()


@dataclass
class Platform:
    """The wired set of components an application works with."""

    config: PlatformConfig
    tools: ToolRegistry
    providers: ProviderRegistry
    embeddings: EmbeddingManager
    embedding_model: str
    vector_db: VectorDatabase
    knowledge_bases: KnowledgeBaseManager
    retriever: VectorRetriever
    agents: AgentFactory
    conversations: ConversationManager

    async def start(self) -> None:
        await self.vector_db.connect()

    async def stop(self) -> None:
        await self.vector_db.disconnect()

    async def __aenter__(self) -> Platform:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


def build_platform(
    config: PlatformConfig | None = None,
    *,
    credentials: CredentialProvider | None = None,
    embedding_model: EmbeddingModel | None = None,
    vector_db: VectorDatabase | None = None,
    search: SearchFunction | None = None,
    weather_lookup: WeatherLookup | None = None,
) -> Platform:
    """Build every component from configuration.

    Args:
        config: Platform configuration (defaults when omitted)
        credentials: Credential source for the agent factory; defaults to
            the ``providers`` section of the configuration
        embedding_model: Replaces the configured embedding backend
        vector_db: Replaces the configured vector database
        search: Backend of the ``web_search`` tool
        weather_lookup: Backend of the ``weather`` tool

    Returns:
        The wired platform; call ``start()`` before ingesting documents
    """
    config = config or PlatformConfig()

    embeddings = EmbeddingManager()
    model_name = embeddings.register_model(embedding_model or create_embedding_model(config.embedding))

    vector_db = vector_db or create_vector_database(config.vector_store)
    knowledge_bases = KnowledgeBaseManager(
        vector_db,
        embeddings,
        default_processor_registry(config.knowledge.chunk_size, config.knowledge.chunk_overlap),
    )
    retriever = VectorRetriever(knowledge_bases, embeddings, vector_db, min_score=config.knowledge.min_score)

    tools = ToolRegistry()
    register_builtin_tools(
        tools,
        config.tools.builtin,
        file_base_path=config.tools.file_base_path,
        search=search,
        weather_lookup=weather_lookup,
        http_timeout=config.tools.http_timeout,
    )
    if config.tools.knowledge_search:
        register_knowledge_search_tool(tools, retriever)

    providers = default_provider_registry()
    agents = AgentFactory(
        tool_registry=tools,
        credentials=credentials or ConfigCredentialProvider(config.providers),
        providers=providers,
        max_tool_iterations=config.agent.max_tool_iterations,
        tool_timeout=config.agent.tool_timeout,
        memory_size=config.agent.memory_size,
        stream_buffer=config.agent.stream_buffer,
    )

    logger.info(
        "Built platform: %d tools, embedding model %s, %s vector store",
        len(tools.list_tools()),
        model_name,
        config.vector_store.backend,
    )
    return Platform(
        config=config,
        tools=tools,
        providers=providers,
        embeddings=embeddings,
        embedding_model=model_name,
        vector_db=vector_db,
        knowledge_bases=knowledge_bases,
        retriever=retriever,
        agents=agents,
        conversations=ConversationManager(config.agent.memory_size),
    )
