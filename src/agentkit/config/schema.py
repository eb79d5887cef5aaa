"""Pydantic models for agentkit.yaml configuration."""

import os
from typing import Literal

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Credentials and endpoint for one model provider."""

    api_key: str | None = Field(default=None, description="API key (prefer api_key_env)")
    api_key_env: str | None = Field(
        default=None,
        description="Environment variable holding the API key, e.g. OPENAI_API_KEY",
    )
    base_url: str | None = Field(default=None, description="Override of the provider's default endpoint")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)
    app_id: str | None = Field(default=None, description="Application id (baidu only)")

    def resolve_api_key(self) -> str | None:
        """Return the inline key, or the one named by ``api_key_env``."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None


class AgentConfig(BaseModel):
    """Agent defaults used by the CLI and the agent factory."""

    default_provider: str = Field(default="openai", description="Provider used when none is given")
    default_model: str = Field(default="gpt-4o-mini", description="Model used when none is given")
    system_prompt: str = Field(
        default="You are a helpful AI assistant. Answer accurately and say when you do not know.",
        description="System prompt for CLI agents",
    )
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, description="Completion length limit", ge=1)
    max_tool_iterations: int = Field(
        default=10,
        description="Tool-resolution rounds allowed per turn before the turn fails",
        ge=0,
        le=100,
    )
    tool_timeout: float | None = Field(
        default=None,
        description="Seconds a single tool call may run (None = no limit)",
        gt=0,
    )
    memory_size: int = Field(default=100, description="Messages kept in memory (0 = unbounded)", ge=0)
    stream_buffer: int = Field(default=64, description="Chunks buffered for streaming readers", ge=1)


class ToolsConfig(BaseModel):
    """Built-in tool configuration."""

    builtin: list[str] = Field(
        default=["calculator", "timezone_converter", "http_request", "web_search"],
        description="Built-in tools to register at startup",
    )
    file_base_path: str | None = Field(
        default=None,
        description="Directory the file_read tool is confined to (None disables it)",
    )
    http_timeout: float = Field(default=30.0, description="Timeout of the http_request tool", gt=0)
    knowledge_search: bool = Field(default=True, description="Register the knowledge_search tool")


class EmbeddingConfig(BaseModel):
    """Embedding model configuration."""

    backend: Literal["hashing", "sentence-transformers", "ollama"] = Field(
        default="hashing",
        description="'hashing' (offline, deterministic), 'sentence-transformers' (local) or 'ollama'",
    )
    model: str | None = Field(default=None, description="Model name (backend default when unset)")
    dimension: int = Field(default=384, description="Vector size of the hashing backend", ge=8)
    device: str | None = Field(default=None, description="sentence-transformers device")
    ollama_host: str = Field(default="http://localhost:11434", description="Ollama server URL")


class VectorStoreConfig(BaseModel):
    """Vector database configuration."""

    backend: Literal["memory", "chromadb"] = Field(
        default="memory",
        description="'memory' (brute force, process-local) or 'chromadb' (HNSW index)",
    )
    host: str | None = Field(default=None, description="ChromaDB server host (None = embedded)")
    port: int = Field(default=8000, description="ChromaDB server port", ge=1, le=65535)
    persist_directory: str | None = Field(
        default=None,
        description="Directory for embedded persistent storage (None = in-memory)",
    )


class KnowledgeConfig(BaseModel):
    """Chunking and retrieval configuration."""

    chunk_size: int = Field(default=1000, description="Maximum characters per chunk", ge=1)
    chunk_overlap: int = Field(default=200, description="Characters carried into the next chunk", ge=0)
    top_k: int = Field(default=5, description="Results returned per query", ge=1, le=100)
    min_score: float | None = Field(
        default=None,
        description="Drop results scoring below this similarity",
        ge=-1.0,
        le=1.0,
    )


class LoggingConfig(BaseModel):
    """Logging configuration applied by the CLI."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s")


class PlatformConfig(BaseModel):
    """Root configuration schema for agentkit."""

    providers: dict[str, ProviderConfig] = Field(
        default_factory=dict,
        description="Provider credentials keyed by provider name (openai, anthropic, baidu, aliyun, ...)",
    )
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
