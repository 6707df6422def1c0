"""Registry turning stored provider settings into document providers.

Each provider type key (``local``, ``s3``, ``onedrive``) maps to the settings
model that validates its records and to a builder that instantiates the
provider from validated settings.  Type keys compare case-insensitively.
Additional types can be registered at runtime (tests register ``memory``).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from pydantic import ValidationError

from src.config.provider_settings import (
    BaseProviderSettings,
    LocalProviderSettings,
    OneDriveProviderSettings,
    S3ProviderSettings,
)
from src.interfaces.document_provider import IDocumentProvider
from src.interfaces.provider_settings_store import ProviderSettingsRecord
from src.providers.documents.local_provider import LocalProvider
from src.providers.documents.onedrive_provider import OneDriveProvider
from src.providers.documents.s3_provider import S3Provider
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

ProviderBuilder = Callable[[Any], IDocumentProvider]


class ProviderFactory:
    """Maps provider type keys to (settings model, builder) pairs."""

    def __init__(self, register_defaults: bool = True) -> None:
        self._settings_types: dict[str, type[BaseProviderSettings]] = {}
        self._builders: dict[str, ProviderBuilder] = {}
        if register_defaults:
            self.register("local", LocalProviderSettings, LocalProvider)
            self.register("s3", S3ProviderSettings, S3Provider)
            self.register("onedrive", OneDriveProviderSettings, OneDriveProvider)

    def register(
        self,
        provider_type: str,
        settings_type: type[BaseProviderSettings],
        builder: ProviderBuilder,
    ) -> None:
        key = provider_type.lower()
        self._settings_types[key] = settings_type
        self._builders[key] = builder
        logger.debug("provider_type_registered", provider_type=key, settings=settings_type.__name__)

    def supported_types(self) -> list[str]:
        return sorted(self._settings_types)

    def is_registered(self, provider_type: str) -> bool:
        return provider_type.lower() in self._settings_types

    def create_settings(self, record: ProviderSettingsRecord) -> BaseProviderSettings:
        """Validate a stored record into its typed settings model.

        The record's ``provider_name`` fills in ``name`` when the JSON
        payload omits it.

        Raises
        ------
        ConfigurationError
            If the type is unknown or the payload fails validation.
        """
        key = record.provider_type.lower()
        settings_type = self._settings_types.get(key)
        if settings_type is None:
            raise ConfigurationError(
                message=f"No settings type registered for provider type {record.provider_type!r}",
                provider_name=f"{record.provider_type}:{record.provider_name}",
            )

        payload = dict(record.settings)
        if not payload.get("name"):
            payload["name"] = record.provider_name
        try:
            return settings_type.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(
                message=f"Invalid settings: {exc.errors(include_url=False)}",
                provider_name=f"{record.provider_type}:{record.provider_name}",
            ) from exc

    def create_provider(self, settings: BaseProviderSettings) -> IDocumentProvider:
        builder = self._builders.get(settings.provider_type.lower())
        if builder is None:
            raise ConfigurationError(
                message=f"No provider builder registered for type {settings.provider_type!r}",
                provider_name=f"{settings.provider_type}:{settings.name}",
            )
        return builder(settings)
