"""Abstract base class for text-embedding service providers.

Defines the contract the sync engine uses to turn chunk texts into vectors.
Implementations may wrap OpenAI ``text-embedding-3-small``, an
OpenAI-compatible endpoint, or a deterministic offline embedder.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-3-small or compatible endpoint
#   HashEmbeddingProvider   -- deterministic offline vectors (tests, dry runs)
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the sync engine.

    The engine relies on positional correspondence between inputs and
    outputs to re-associate vectors with their chunks.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for an ordered batch of texts.

        Parameters
        ----------
        texts:
            Chunk texts in document order.  Implementations partition into
            backend-imposed sub-batches internally.

        Returns
        -------
        list[list[float]]
            One vector per input, same order and count.  Each inner list has
            length :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.EmbeddingProviderError
            If any sub-batch fails.  Partial results are never returned.
        """

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text.  Convenience wrapper around :meth:`embed`."""
        result = await self.embed([text])
        return result[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider instance.  Example values:
        ``1536`` (``text-embedding-3-small``), ``3072``
        (``text-embedding-3-large``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations check credentials without generating an embedding.
        """
