"""Application settings loaded from environment variables via pydantic-settings.

# --- HOW SETTINGS WORK ---------------------------------------------------
#
# pydantic-settings reads configuration from two sources, in priority
# order:
#
#   1. Environment variables -- e.g. OPENAI_API_KEY=sk-abc123 (always wins)
#   2. .env file             -- key=value lines in the working directory
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# apply when neither source sets a value.
#
# Provider credentials (S3 keys, OneDrive secrets) are NOT settings fields:
# they live in the provider settings store and are seeded from their own
# environment variables by ProviderSettingsSeeder.
# -------------------------------------------------------------------------
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.sync import SyncOptions


class Settings(BaseSettings):
    """docsync application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    # SQLite file holding chunks, tracking records, the provider registry
    # and provider settings.
    database_path: str = "data/docsync.db"

    # === Embeddings ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (Azure proxy, TogetherAI, ...)
    openai_embedding_model: str = "text-embedding-3-small"
    openai_embedding_batch_size: int = 16
    # Use deterministic offline vectors instead of calling an API.
    embedding_offline: bool = False
    offline_embedding_dimension: int = 256

    # === Chunking / sync behaviour ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_files: int | None = None
    cleanup_orphaned_documents: bool = True
    force_full_reindex: bool = False
    document_concurrency: int = 1

    # === Scheduling ===
    sync_interval_hours: float = 6.0
    seed_providers_from_env: bool = True

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def to_sync_options(self, **overrides: object) -> SyncOptions:
        """Build the per-run :class:`SyncOptions` from these settings.

        Keyword overrides (e.g. from CLI flags) win; ``None`` values are
        ignored so unset flags fall back to the configured value.
        """
        values: dict[str, object] = {
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "max_files": self.max_files,
            "cleanup_orphaned_documents": self.cleanup_orphaned_documents,
            "force_full_reindex": self.force_full_reindex,
            "document_concurrency": self.document_concurrency,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SyncOptions(**values)
