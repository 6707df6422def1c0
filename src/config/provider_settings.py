"""Typed, validated settings for each document provider type.

Stored provider records are free-form JSON documents; the models here turn
them into validated settings objects.  Field names accept both snake_case and
the camelCase keys written by the admin UI (``bucketName``, ``rootPath``...).

Validation mirrors what each provider needs to run:

* local    -- a non-empty root path and at least one extension, always;
* s3       -- bucket, credentials unless using an instance profile, and at
              least one extension, only when enabled;
* onedrive -- tenant/client/secret, a drive or site id for business
              accounts, and at least one extension, only when enabled.

Disabled records are allowed to be incomplete so operators can stage them.
"""

from __future__ import annotations

from typing import ClassVar, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from src.utils.mime_types import normalize_extension


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


class BaseProviderSettings(BaseModel):
    """Fields shared by every provider type."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    provider_type: ClassVar[str] = ""

    enabled: bool = False
    name: str = ""
    file_extensions: list[str] = Field(
        default_factory=list,
        validation_alias=_alias("file_extensions", "fileExtensions"),
    )

    @field_validator("file_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        normalized: list[str] = []
        for ext in value:
            ext = normalize_extension(ext)
            if ext and ext not in normalized:
                normalized.append(ext)
        return normalized

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()


class LocalProviderSettings(BaseProviderSettings):
    """Settings for a directory tree on the local filesystem."""

    provider_type: ClassVar[str] = "local"

    name: str = "LocalFiles"
    root_path: str = Field(default="/data/documents", validation_alias=_alias("root_path", "rootPath"))
    file_extensions: list[str] = Field(
        default_factory=lambda: [".docx", ".pdf", ".txt"],
        validation_alias=_alias("file_extensions", "fileExtensions"),
    )
    recursive: bool = True
    exclude_patterns: list[str] = Field(
        default_factory=list,
        validation_alias=_alias("exclude_patterns", "excludePatterns"),
    )

    @model_validator(mode="after")
    def _check_required(self) -> LocalProviderSettings:
        if not self.root_path.strip():
            raise ValueError("Local provider requires a non-empty root path.")
        if not self.file_extensions:
            raise ValueError("Local provider requires at least one file extension filter.")
        return self


class S3ProviderSettings(BaseProviderSettings):
    """Settings for one S3 bucket, optionally narrowed to a key prefix."""

    provider_type: ClassVar[str] = "s3"

    name: str = "S3"
    bucket_name: str = Field(default="", validation_alias=_alias("bucket_name", "bucketName"))
    prefix: str | None = None
    region: str = "us-east-1"
    access_key_id: str | None = Field(
        default=None, validation_alias=_alias("access_key_id", "accessKeyId")
    )
    secret_access_key: str | None = Field(
        default=None, validation_alias=_alias("secret_access_key", "secretAccessKey")
    )
    session_token: str | None = Field(
        default=None, validation_alias=_alias("session_token", "sessionToken")
    )
    use_instance_profile: bool = Field(
        default=False, validation_alias=_alias("use_instance_profile", "useInstanceProfile")
    )
    # Custom endpoint for S3-compatible stores (MinIO, LocalStack).
    endpoint_url: str | None = Field(
        default=None, validation_alias=_alias("endpoint_url", "endpointUrl")
    )
    file_extensions: list[str] = Field(
        default_factory=lambda: [".docx", ".pdf", ".txt"],
        validation_alias=_alias("file_extensions", "fileExtensions"),
    )

    @property
    def auth_mode(self) -> str:
        if self.use_instance_profile:
            return "InstanceProfile"
        if self.session_token:
            return "SessionToken"
        return "AccessKey"

    @model_validator(mode="after")
    def _check_required(self) -> S3ProviderSettings:
        if not self.enabled:
            return self
        if not self.bucket_name.strip():
            raise ValueError("S3 provider requires a bucket name when enabled.")
        if not self.use_instance_profile and not (self.access_key_id and self.secret_access_key):
            raise ValueError(
                "S3 provider requires access_key_id and secret_access_key "
                "when not using an instance profile."
            )
        if not self.file_extensions:
            raise ValueError("S3 provider requires at least one file extension filter.")
        return self


class OneDriveProviderSettings(BaseProviderSettings):
    """Settings for a OneDrive or SharePoint document library folder."""

    provider_type: ClassVar[str] = "onedrive"

    name: str = "OneDrive"
    account_type: Literal["business", "personal"] = Field(
        default="business", validation_alias=_alias("account_type", "accountType")
    )
    tenant_id: str | None = Field(default=None, validation_alias=_alias("tenant_id", "tenantId"))
    client_id: str | None = Field(default=None, validation_alias=_alias("client_id", "clientId"))
    client_secret: str | None = Field(
        default=None, validation_alias=_alias("client_secret", "clientSecret")
    )
    site_id: str | None = Field(default=None, validation_alias=_alias("site_id", "siteId"))
    drive_id: str | None = Field(default=None, validation_alias=_alias("drive_id", "driveId"))
    folder_path: str = Field(
        default="/Shared Documents/Docs", validation_alias=_alias("folder_path", "folderPath")
    )
    file_extensions: list[str] = Field(
        default_factory=lambda: [".docx"],
        validation_alias=_alias("file_extensions", "fileExtensions"),
    )

    @field_validator("account_type", mode="before")
    @classmethod
    def _lower_account_type(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_required(self) -> OneDriveProviderSettings:
        if not self.enabled:
            return self
        if not (self.tenant_id and self.client_id and self.client_secret):
            raise ValueError(
                "OneDrive provider requires tenant_id, client_id and client_secret when enabled."
            )
        if self.account_type == "business" and not (self.drive_id or self.site_id):
            raise ValueError("Business OneDrive provider requires either drive_id or site_id.")
        if not self.file_extensions:
            raise ValueError("OneDrive provider requires at least one file extension filter.")
        return self
