"""Deterministic offline embedding provider.

Maps each text to a fixed-dimension unit vector derived from SHA-256 digests
of its tokens (the "hashing trick").  Vectors carry no real semantics but
are stable across runs and processes, which is what tests and offline dry
runs of the sync pipeline need.
"""

from __future__ import annotations

import hashlib
import math
import re

from src.interfaces.embedding_provider import IEmbeddingProvider

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class HashEmbeddingProvider(IEmbeddingProvider):
    """Offline embedder producing hashed bag-of-words vectors."""

    def __init__(self, dimension: int = 256) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hash_embedding"

    def is_available(self) -> bool:
        return True

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimension
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]
