"""Embedding models and the embedding manager."""

from agentkit.embeddings.client import EmbeddingModel
from agentkit.embeddings.hashing import HashingEmbedding
from agentkit.embeddings.manager import EmbeddingManager, EmbeddingRequest, EmbeddingResponse
from agentkit.embeddings.ollama import OllamaEmbedding
from agentkit.embeddings.sentence_transformer import SentenceTransformerEmbedding

__all__ = [
    "EmbeddingManager",
    "EmbeddingModel",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "HashingEmbedding",
    "OllamaEmbedding",
    "SentenceTransformerEmbedding",
]
