"""Deterministic feature-hashing embeddings (offline, no model download)."""

import hashlib
import math
import re
from collections import Counter

import numpy as np

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


class HashingEmbedding:
    """Bag-of-words embedding with hashed token positions.

    Each lowercase token is hashed with SHA-256 to a fixed slot of the
    vector and weighted by ``1 + log(tf)``; the result is L2-normalized.
    Texts sharing words get a positive cosine similarity. There is no
    semantic understanding, so this backend suits tests, demos and keyword
    retrieval rather than production search.
    """

    def __init__(self, dimension: int = 384, model_name: str | None = None):
        """Initialize the hashing embedding.

        Args:
            dimension: Output vector size; larger values reduce collisions
            model_name: Registry name, defaults to ``hashing-<dimension>``
        """
        if dimension <= 0:
            msg = "dimension must be positive"
            raise ValueError(msg)
        self._dimension = dimension
        self._model_name = model_name or f"hashing-{dimension}"

    def _slot(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self._dimension

    def embed_text(self, text: str) -> list[float]:
        """Embed a single text synchronously."""
        vector = np.zeros(self._dimension, dtype=np.float64)
        counts = Counter(_TOKEN_PATTERN.findall(text.lower()))
        for token, tf in counts.items():
            vector[self._slot(token)] += 1.0 + math.log(tf)

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors
        """
        return [self.embed_text(text) for text in texts]

    @property
    def dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the name of the embedding model."""
        return self._model_name
