"""Embedding model interface."""

from typing import Protocol


class EmbeddingModel(Protocol):
    """A text-to-vector model registered with the ``EmbeddingManager``.

    Every vector a model returns has exactly ``dimension`` components, and
    ``embed`` returns one vector per input text, in input order. Knowledge
    bases size their vector collection from ``dimension`` when they are
    created, so a model must know its dimension before its first call.
    """

    async def embed(self, texts: list[str]) -> list[list[float]]:
        ...

    @property
    def dimension(self) -> int:
        ...

    @property
    def model_name(self) -> str:
        ...
