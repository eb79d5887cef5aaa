"""Sentence-transformers embedding model (local inference)."""

import asyncio
import logging
import threading
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbedding:
    """Embeddings computed in-process with a sentence-transformers model.

    The model is downloaded and loaded on first use, at most once even when
    several tasks embed concurrently. Encoding is CPU/GPU bound and runs in
    a worker thread.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        device: str | None = None,
        cache_dir: str | None = None,
        normalize: bool = True,
        batch_size: int = 32,
    ):
        """Initialize the model handle without loading the model.

        Args:
            model_name: HuggingFace model identifier
            device: "cuda", "mps", "cpu", or None to let the library choose
            cache_dir: Model cache directory (None uses the library default)
            normalize: L2-normalize output vectors
            batch_size: Texts encoded per forward pass
        """
        self._model_name = model_name
        self._device = device
        self._cache_dir = cache_dir
        self._normalize = normalize
        self._batch_size = batch_size
        self._model: Any = None
        self._dimension: int | None = None
        self._load_lock = threading.Lock()

    def _load_model(self) -> Any:
        with self._load_lock:
            if self._model is not None:
                return self._model

            try:
                from sentence_transformers import SentenceTransformer  # type: ignore[import-not-found]
            except ImportError as e:
                msg = (
                    "sentence-transformers is required for local embeddings. "
                    "Install with: pip install 'agentkit[local]'"
                )
                raise ImportError(msg) from e

            logger.info("Loading embedding model %s", self._model_name)
            self._model = SentenceTransformer(self._model_name, device=self._device, cache_folder=self._cache_dir)
            self._dimension = self._model.get_sentence_embedding_dimension()
            return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        encoded = model.encode(texts, batch_size=self._batch_size, normalize_embeddings=self._normalize)
        return np.asarray(encoded, dtype=np.float64).tolist()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, texts)

    @property
    def dimension(self) -> int:
        """Vector size of the model; loads the model if needed."""
        if self._dimension is None:
            self._load_model()
        return self._dimension  # type: ignore[return-value]

    @property
    def model_name(self) -> str:
        return self._model_name
