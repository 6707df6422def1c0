"""Shared pytest fixtures for the docsync test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.config.settings import Settings
from src.models.sync import SyncOptions
from src.providers.documents.memory_provider import InMemoryDocumentProvider
from src.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from src.providers.extraction import default_extractors
from src.providers.store.memory_sync_store import InMemorySyncStore
from src.services.sync.sync_engine import SyncEngine
from src.services.sync.text_extraction_service import TextExtractionService

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    """Build a Settings instance that ignores the developer's .env file."""
    defaults = {
        "openai_api_key": "",
        "openai_base_url": "",
        "database_path": ":memory:",
        "embedding_offline": True,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


@pytest.fixture
def t0() -> datetime:
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t1() -> datetime:
    return datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Engine building blocks
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemorySyncStore:
    return InMemorySyncStore()


class RecordingEmbeddingProvider(HashEmbeddingProvider):
    """Hash embedder that remembers every batch it was asked to embed."""

    def __init__(self, dimension: int = 16) -> None:
        super().__init__(dimension=dimension)
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return await super().embed(texts)


@pytest.fixture
def embedder() -> RecordingEmbeddingProvider:
    return RecordingEmbeddingProvider(dimension=16)


@pytest.fixture
def extraction_service() -> TextExtractionService:
    return TextExtractionService(default_extractors())


@pytest.fixture
def memory_provider() -> InMemoryDocumentProvider:
    return InMemoryDocumentProvider(name="Primary")


@pytest.fixture
def make_engine(memory_store, extraction_service, embedder):
    """Factory for a SyncEngine over the shared in-memory store."""

    def _make(store=None, **option_overrides) -> SyncEngine:
        values = {"chunk_size": 100, "chunk_overlap": 20}
        values.update(option_overrides)
        return SyncEngine(
            store=store or memory_store,
            extraction_service=extraction_service,
            embedder=embedder,
            options=SyncOptions(**values),
        )

    return _make


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """A small local document tree."""
    root = tmp_path / "docs"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("hello world", encoding="utf-8")
    (root / "notes.md").write_text("# Notes\n\nSome markdown.", encoding="utf-8")
    (root / "sub" / "b.txt").write_text("nested file", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG\r\n")
    (root / "~$lock.txt").write_text("office lock", encoding="utf-8")
    return root
