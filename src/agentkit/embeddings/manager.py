"""Name-keyed registry of embedding models."""

import logging
import threading
from dataclasses import dataclass

from agentkit.embeddings.client import EmbeddingModel
from agentkit.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingRequest:
    model: str
    texts: list[str]


@dataclass
class EmbeddingResponse:
    model: str
    vectors: list[list[float]]
    dimension: int


class EmbeddingManager:
    """Registry of embedding models addressed by name.

    Different models produce different dimensions; callers read the
    dimension from the response or the model rather than assuming one.
    """

    def __init__(self) -> None:
        self._models: dict[str, EmbeddingModel] = {}
        self._lock = threading.RLock()

    def register_model(self, model: EmbeddingModel, name: str | None = None) -> str:
        """Register a model under ``name`` (default: its ``model_name``).

        Returns:
            The name the model was registered under
        """
        key = name or model.model_name
        if not key:
            msg = "Embedding model name must not be empty"
            raise ValueError(msg)
        with self._lock:
            self._models[key] = model
        logger.debug("Registered embedding model %s", key)
        return key

    def get_model(self, name: str) -> EmbeddingModel:
        """Look up a model.

        Raises:
            ConfigurationError: If no model is registered under ``name``
        """
        with self._lock:
            model = self._models.get(name)
        if model is None:
            msg = f"Embedding model not found: {name}"
            raise ConfigurationError(msg)
        return model

    def list_models(self) -> list[str]:
        with self._lock:
            return sorted(self._models)

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Embed texts with the named model.

        Raises:
            ConfigurationError: If the model is unknown
            ValueError: If no texts are given
            EmbeddingError: If the model fails or returns the wrong number of vectors
        """
        model = self.get_model(request.model)
        if not request.texts:
            msg = "At least one text is required"
            raise ValueError(msg)

        try:
            vectors = await model.embed(request.texts)
        except Exception as e:
            msg = f"Embedding with {request.model} failed: {e}"
            raise EmbeddingError(msg) from e

        if len(vectors) != len(request.texts):
            msg = f"Model {request.model} returned {len(vectors)} vectors for {len(request.texts)} texts"
            raise EmbeddingError(msg)

        return EmbeddingResponse(model=request.model, vectors=vectors, dimension=model.dimension)
