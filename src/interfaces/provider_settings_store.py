"""Abstract base class for persisted provider settings records.

Provider credentials and filters are produced by an external admin surface
and stored as JSON documents keyed by ``(provider_type, provider_name)``.
The :class:`~src.services.sync.provider_configuration_service.ProviderConfigurationService`
reads them; the seeder writes them from environment variables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProviderSettingsRecord(BaseModel):
    """One stored settings document."""

    model_config = ConfigDict(frozen=True)

    provider_type: str
    provider_name: str
    settings: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


# Concrete implementations:
#   SQLiteProviderSettingsStore -- aiosqlite ``provider_settings`` table
# Located in: src/providers/store/
class IProviderSettingsStore(ABC):
    """Contract for CRUD over provider settings records."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the backing table if it does not exist."""

    @abstractmethod
    async def get_all(self) -> list[ProviderSettingsRecord]:
        """Return all records ordered by type then name."""

    @abstractmethod
    async def get(self, provider_type: str, provider_name: str) -> ProviderSettingsRecord | None:
        """Return one record, or ``None``.  Matching is case-insensitive."""

    @abstractmethod
    async def upsert(
        self, provider_type: str, provider_name: str, settings: dict[str, Any]
    ) -> None:
        """Insert or replace a record."""

    @abstractmethod
    async def delete(self, provider_type: str, provider_name: str) -> bool:
        """Delete a record.  Returns ``True`` if one was removed."""
