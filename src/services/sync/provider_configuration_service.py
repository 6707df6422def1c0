"""Loads provider settings from the store and caches provider instances.

A :class:`ProviderConfigurationSnapshot` is built in one go by
:meth:`ProviderConfigurationService.reload` and never mutated afterwards.
A sync pass takes a snapshot at its start and keeps using it, so a reload
that happens mid-pass is only seen by the next pass.  Providers a reload
replaces or drops are closed, so callers reload between passes rather than
during one.

Records that fail validation, or whose type has no registered settings
model, are logged and skipped; one broken record never hides the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from src.config.provider_settings import BaseProviderSettings
from src.interfaces.document_provider import IDocumentProvider
from src.interfaces.provider_settings_store import IProviderSettingsStore
from src.services.sync.provider_factory import ProviderFactory
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def _key(provider_type: str, provider_name: str) -> str:
    return f"{provider_type.lower()}:{provider_name.lower()}"


@dataclass(frozen=True)
class ProviderConfigurationSnapshot:
    """Immutable view of the configured providers at one point in time.

    ``settings`` holds every valid record, enabled or not; ``providers``
    holds instances for the enabled ones, in store order.
    """

    providers: tuple[IDocumentProvider, ...] = ()
    settings: tuple[BaseProviderSettings, ...] = ()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_provider(self, provider_type: str, provider_name: str) -> IDocumentProvider | None:
        wanted = _key(provider_type, provider_name)
        for provider in self.providers:
            if _key(provider.get_provider_type(), provider.get_provider_name()) == wanted:
                return provider
        return None

    def get_settings(self, provider_type: str, provider_name: str) -> BaseProviderSettings | None:
        wanted = _key(provider_type, provider_name)
        for settings in self.settings:
            if _key(settings.provider_type, settings.name) == wanted:
                return settings
        return None


class ProviderConfigurationService:
    """Reads provider settings records and builds provider snapshots.

    Parameters
    ----------
    settings_store:
        Source of stored provider settings records.
    factory:
        Registry used to validate records and instantiate providers.
    """

    def __init__(self, settings_store: IProviderSettingsStore, factory: ProviderFactory | None = None) -> None:
        self._store = settings_store
        self._factory = factory or ProviderFactory()
        self._snapshot: ProviderConfigurationSnapshot | None = None
        # Live instances by key, with the settings they were built from.
        self._instances: dict[str, tuple[BaseProviderSettings, IDocumentProvider]] = {}
        self._reload_lock = asyncio.Lock()

    async def get_snapshot(self) -> ProviderConfigurationSnapshot:
        """Return the cached snapshot, loading it on first use."""
        if self._snapshot is not None:
            return self._snapshot
        return await self.reload()

    async def reload(self) -> ProviderConfigurationSnapshot:
        """Rebuild the snapshot from the settings store.

        Concurrent callers are serialized; the new snapshot replaces the old
        one only once it is complete.  Providers whose settings did not
        change are carried over as the same instance; the ones that were
        replaced, disabled or deleted are closed.
        """
        async with self._reload_lock:
            records = await self._store.get_all()
            valid: list[BaseProviderSettings] = []
            for record in records:
                try:
                    valid.append(self._factory.create_settings(record))
                except ConfigurationError as exc:
                    logger.warning(
                        "provider_settings_skipped",
                        provider_type=record.provider_type,
                        provider_name=record.provider_name,
                        error=str(exc),
                    )

            previous = self._instances
            current: dict[str, tuple[BaseProviderSettings, IDocumentProvider]] = {}
            providers: list[IDocumentProvider] = []
            seen: set[str] = set()
            for settings in valid:
                key = _key(settings.provider_type, settings.name)
                if key in seen:
                    logger.warning("provider_duplicate_skipped", provider=key)
                    continue
                seen.add(key)
                if not settings.enabled:
                    continue
                cached = previous.get(key)
                if cached is not None and cached[0] == settings:
                    provider = cached[1]
                else:
                    try:
                        provider = self._factory.create_provider(settings)
                    except Exception as exc:  # noqa: BLE001
                        logger.error(
                            "provider_instantiation_failed",
                            provider_type=settings.provider_type,
                            provider_name=settings.name,
                            error=str(exc),
                        )
                        continue
                current[key] = (settings, provider)
                providers.append(provider)

            snapshot = ProviderConfigurationSnapshot(providers=tuple(providers), settings=tuple(valid))
            self._snapshot = snapshot
            self._instances = current

            reused = {id(provider) for _, provider in current.values()}
            stale = [provider for _, provider in previous.values() if id(provider) not in reused]
            for provider in stale:
                await self._close_provider(provider)

            logger.info(
                "provider_configuration_loaded",
                records=len(records),
                valid=len(valid),
                providers=len(providers),
                closed=len(stale),
            )

        return snapshot

    async def get_provider(self, provider_type: str, provider_name: str) -> IDocumentProvider | None:
        """Look up an enabled provider by type and name, case-insensitively."""
        snapshot = await self.get_snapshot()
        return snapshot.get_provider(provider_type, provider_name)

    async def aclose(self) -> None:
        """Close every live provider; the next reload builds fresh ones."""
        async with self._reload_lock:
            instances, self._instances = self._instances, {}
            self._snapshot = None
            for _, provider in instances.values():
                await self._close_provider(provider)

    @staticmethod
    async def _close_provider(provider: IDocumentProvider) -> None:
        try:
            await provider.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.warning("provider_close_failed", provider=provider.describe(), error=str(exc))
