"""Ollama embedding model (via the Ollama HTTP API)."""

import logging

import httpx

logger = logging.getLogger(__name__)

# Output sizes of common Ollama embedding models
KNOWN_DIMENSIONS = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
    "bge-m3": 1024,
}


class OllamaEmbedding:
    """Embeddings from a model served by Ollama.

    Texts are sent in batches to ``/api/embed``, which accepts a list input
    and answers with one vector per text.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
        timeout: int = 30,
        dimension: int | None = None,
        batch_size: int = 32,
    ):
        """Initialize the Ollama embedding model.

        Args:
            model: Ollama model name (e.g., "nomic-embed-text")
            host: Ollama server URL
            timeout: Request timeout in seconds
            dimension: Vector size of models missing from KNOWN_DIMENSIONS
            batch_size: Texts sent per request
        """
        self._model = model
        self._host = host.rstrip("/")
        self._timeout = timeout
        self._dimension = dimension
        self._batch_size = max(1, batch_size)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, one request per batch.

        Raises:
            httpx.HTTPStatusError: If Ollama returns an error status
            ValueError: If Ollama returns the wrong number of vectors
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        async with httpx.AsyncClient(base_url=self._host, timeout=self._timeout) as client:
            for start in range(0, len(texts), self._batch_size):
                batch = texts[start : start + self._batch_size]
                response = await client.post("/api/embed", json={"model": self._model, "input": batch})
                response.raise_for_status()
                embeddings = response.json()["embeddings"]
                if len(embeddings) != len(batch):
                    msg = f"Ollama returned {len(embeddings)} embeddings for {len(batch)} texts"
                    raise ValueError(msg)
                vectors.extend(embeddings)

        if self._dimension is None:
            self._dimension = len(vectors[0])
            logger.debug("Ollama model %s has dimension %d", self._model, self._dimension)
        return vectors

    @property
    def dimension(self) -> int:
        """Vector size of the model.

        Raises:
            ValueError: If the model is unknown and nothing was embedded yet
        """
        if self._dimension is not None:
            return self._dimension
        base_name = self._model.split(":", 1)[0]
        if base_name in KNOWN_DIMENSIONS:
            return KNOWN_DIMENSIONS[base_name]
        msg = f"Dimension of {self._model} unknown until first embedding is generated"
        raise ValueError(msg)

    @property
    def model_name(self) -> str:
        return self._model
