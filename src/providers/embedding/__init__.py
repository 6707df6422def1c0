"""Embedding provider implementations.

Embeddings convert chunk text into numeric vectors that are stored alongside
each chunk for similarity search.

Two implementations of IEmbeddingProvider:
    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), or any
       OpenAI-compatible endpoint.  Requires an API key.
    2. HashEmbeddingProvider   -- deterministic offline vectors.  No network,
       used by tests and ``embedding_offline`` dry runs.
"""

from src.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["HashEmbeddingProvider", "OpenAIEmbeddingProvider"]
