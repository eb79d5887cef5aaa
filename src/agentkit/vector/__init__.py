"""Vector databases for chunk storage and similarity search."""

from agentkit.vector.chromadb import ChromaDBVectorDatabase
from agentkit.vector.memory import InMemoryVectorDatabase
from agentkit.vector.store import SearchResult, VectorDatabase, cosine_similarity

__all__ = [
    "ChromaDBVectorDatabase",
    "InMemoryVectorDatabase",
    "SearchResult",
    "VectorDatabase",
    "cosine_similarity",
]
