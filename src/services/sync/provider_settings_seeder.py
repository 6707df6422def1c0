"""Seeds provider settings records from environment variables.

Lets a fresh deployment come up with working providers before anyone has
touched the admin surface.  A record is only written when the provider's
``*_ENABLED`` flag is true and no record with the same type/name exists,
so settings edited later are never overwritten by a restart.

Recognised variables:

    LOCAL_PROVIDER_ENABLED, LOCAL_PROVIDER_NAME, LOCAL_PROVIDER_ROOT_PATH,
    LOCAL_PROVIDER_EXTENSIONS

    S3_ENABLED, S3_NAME, S3_BUCKET_NAME, S3_PREFIX, S3_REGION,
    S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_SESSION_TOKEN,
    S3_USE_INSTANCE_PROFILE, S3_FILE_EXTENSIONS

    ONEDRIVE_ENABLED, ONEDRIVE_NAME, ONEDRIVE_ACCOUNT_TYPE,
    ONEDRIVE_TENANT_ID, ONEDRIVE_CLIENT_ID, ONEDRIVE_CLIENT_SECRET,
    ONEDRIVE_SITE_ID, ONEDRIVE_DRIVE_ID, ONEDRIVE_FOLDER_PATH

Extension lists are comma separated.  Booleans accept ``true``/``1``/``yes``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import structlog

from src.config.provider_settings import (
    BaseProviderSettings,
    LocalProviderSettings,
    OneDriveProviderSettings,
    S3ProviderSettings,
)
from src.interfaces.provider_settings_store import IProviderSettingsStore

logger = structlog.get_logger(logger_name=__name__)

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


class ProviderSettingsSeeder:
    """Writes initial provider settings from the environment.

    Parameters
    ----------
    store:
        Destination settings store.
    environ:
        Variable source; ``os.environ`` when omitted.
    """

    def __init__(self, store: IProviderSettingsStore, environ: Mapping[str, str] | None = None) -> None:
        self._store = store
        self._environ = environ if environ is not None else os.environ

    async def seed_from_environment(self) -> list[str]:
        """Run every seeder; return ``"type:name"`` for each record written.

        A failing seeder (invalid values, store error) is logged and does
        not stop the others.
        """
        seeded: list[str] = []
        for seeder in (self._seed_onedrive, self._seed_local, self._seed_s3):
            try:
                key = await seeder()
            except Exception as exc:  # noqa: BLE001
                logger.warning("provider_seed_failed", seeder=seeder.__name__.removeprefix("_seed_"), error=str(exc))
                continue
            if key is not None:
                seeded.append(key)
        return seeded

    # ------------------------------------------------------------------
    # Per-type seeders
    # ------------------------------------------------------------------

    async def _seed_onedrive(self) -> str | None:
        if not self._get_bool("ONEDRIVE_ENABLED"):
            return None
        name = self._get("ONEDRIVE_NAME") or "OneDrive"
        values: dict[str, Any] = {
            "enabled": True,
            "name": name,
            "account_type": self._get("ONEDRIVE_ACCOUNT_TYPE") or "business",
            "tenant_id": self._get("ONEDRIVE_TENANT_ID"),
            "client_id": self._get("ONEDRIVE_CLIENT_ID"),
            "client_secret": self._get("ONEDRIVE_CLIENT_SECRET"),
            "site_id": self._get("ONEDRIVE_SITE_ID"),
            "drive_id": self._get("ONEDRIVE_DRIVE_ID"),
            "folder_path": self._get("ONEDRIVE_FOLDER_PATH") or "/Shared Documents/Docs",
        }
        return await self._seed(OneDriveProviderSettings, name, values)

    async def _seed_local(self) -> str | None:
        if not self._get_bool("LOCAL_PROVIDER_ENABLED"):
            return None
        name = self._get("LOCAL_PROVIDER_NAME") or "LocalFiles"
        values: dict[str, Any] = {
            "enabled": True,
            "name": name,
            "root_path": self._get("LOCAL_PROVIDER_ROOT_PATH") or "/data/documents",
        }
        extensions = self._get_list("LOCAL_PROVIDER_EXTENSIONS")
        if extensions:
            values["file_extensions"] = extensions
        return await self._seed(LocalProviderSettings, name, values)

    async def _seed_s3(self) -> str | None:
        if not self._get_bool("S3_ENABLED"):
            return None
        name = self._get("S3_NAME") or "S3"
        values: dict[str, Any] = {
            "enabled": True,
            "name": name,
            "bucket_name": self._get("S3_BUCKET_NAME") or "",
            "prefix": self._get("S3_PREFIX"),
            "region": self._get("S3_REGION") or "us-east-1",
            "access_key_id": self._get("S3_ACCESS_KEY_ID"),
            "secret_access_key": self._get("S3_SECRET_ACCESS_KEY"),
            "session_token": self._get("S3_SESSION_TOKEN"),
            "use_instance_profile": self._get_bool("S3_USE_INSTANCE_PROFILE"),
        }
        extensions = self._get_list("S3_FILE_EXTENSIONS")
        if extensions:
            values["file_extensions"] = extensions
        return await self._seed(S3ProviderSettings, name, values)

    async def _seed(
        self, settings_type: type[BaseProviderSettings], name: str, values: dict[str, Any]
    ) -> str | None:
        provider_type = settings_type.provider_type
        existing = await self._store.get(provider_type, name)
        if existing is not None:
            logger.debug("provider_seed_skipped_existing", provider_type=provider_type, provider_name=name)
            return None

        # Validates; raises pydantic.ValidationError on bad input.
        settings = settings_type.model_validate(values)
        await self._store.upsert(provider_type, settings.name, settings.model_dump(exclude_none=True))
        logger.info("provider_seeded_from_environment", provider_type=provider_type, provider_name=settings.name)
        return f"{provider_type}:{settings.name}"

    # ------------------------------------------------------------------
    # Environment helpers
    # ------------------------------------------------------------------

    def _get(self, name: str) -> str | None:
        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def _get_bool(self, name: str) -> bool:
        value = self._get(name)
        return value is not None and value.lower() in _TRUE_VALUES

    def _get_list(self, name: str) -> list[str]:
        value = self._get(name)
        if value is None:
            return []
        return [part.strip() for part in value.split(",") if part.strip()]
