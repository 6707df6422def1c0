"""AWS S3 document provider.

Lists one bucket (optionally under a key prefix) with ``ListObjectsV2``,
following continuation tokens until the listing is complete, and downloads
objects with ``GetObject``.  The object key is the document id, so ids are
stable for as long as the object keeps its key.

boto3 is synchronous; every call is pushed to a worker thread with
``asyncio.to_thread`` so the event loop (and cancellation) stays responsive
between pages.

Error mapping:
    NoSuchKey / 404            -> DocumentNotFoundError
    any other ClientError      -> ProviderUnavailableError
    BotoCoreError (network,
    missing credentials, ...)  -> ProviderUnavailableError
"""

from __future__ import annotations

import asyncio
import io
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, BinaryIO

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.config.provider_settings import S3ProviderSettings
from src.interfaces.document_provider import IDocumentProvider
from src.models.documents import ProviderDocument, ProviderMetadata
from src.utils.errors import DocumentNotFoundError, ProviderUnavailableError
from src.utils.mime_types import get_mime_type

logger = structlog.get_logger(logger_name=__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3Provider(IDocumentProvider):
    """Document provider backed by an S3 bucket.

    Parameters
    ----------
    settings:
        Validated S3 settings.
    client:
        Optional pre-built boto3 S3 client (used by tests).  Built from
        *settings* when omitted.
    """

    def __init__(self, settings: S3ProviderSettings, client: Any | None = None) -> None:
        self._settings = settings
        self._prefix = settings.prefix or ""
        self._extensions = frozenset(settings.file_extensions)
        self._client = client if client is not None else self._build_client(settings)
        logger.info(
            "s3_provider_initialized",
            name=settings.name,
            bucket=settings.bucket_name,
            prefix=self._prefix or "(root)",
            auth_mode=settings.auth_mode,
        )

    @staticmethod
    def _build_client(settings: S3ProviderSettings) -> Any:
        client_config: dict[str, Any] = {
            "service_name": "s3",
            "region_name": settings.region,
        }
        if not settings.use_instance_profile:
            client_config["aws_access_key_id"] = settings.access_key_id
            client_config["aws_secret_access_key"] = settings.secret_access_key
            if settings.session_token:
                client_config["aws_session_token"] = settings.session_token
        if settings.endpoint_url:
            client_config["endpoint_url"] = settings.endpoint_url
            client_config["config"] = Config(s3={"addressing_style": "path"})
        return boto3.client(**client_config)

    # ------------------------------------------------------------------
    # IDocumentProvider implementation
    # ------------------------------------------------------------------

    def get_provider_type(self) -> str:
        return S3ProviderSettings.provider_type

    def get_provider_name(self) -> str:
        return self._settings.name

    def is_enabled(self) -> bool:
        return self._settings.enabled

    async def list_documents(self) -> list[ProviderDocument]:
        documents: list[ProviderDocument] = []
        continuation_token: str | None = None
        pages = 0

        while True:
            request: dict[str, Any] = {"Bucket": self._settings.bucket_name}
            if self._prefix:
                request["Prefix"] = self._prefix
            if continuation_token:
                request["ContinuationToken"] = continuation_token

            try:
                response = await asyncio.to_thread(self._client.list_objects_v2, **request)
            except (ClientError, BotoCoreError) as exc:
                raise ProviderUnavailableError(
                    message=f"Failed to list bucket {self._settings.bucket_name}: {exc}",
                    provider_name=self.describe(),
                ) from exc

            pages += 1
            for obj in response.get("Contents", []):
                document = self._to_document(obj)
                if document is not None:
                    documents.append(document)

            if not response.get("IsTruncated"):
                break
            continuation_token = response.get("NextContinuationToken")
            if not continuation_token:
                break

        logger.info("s3_documents_listed", provider=self.describe(), count=len(documents), pages=pages)
        return documents

    async def download_document(self, document_id: str) -> BinaryIO:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self._settings.bucket_name, Key=document_id
            )
            body = response["Body"]
            try:
                data = await asyncio.to_thread(body.read)
            finally:
                body.close()
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise DocumentNotFoundError(
                    message=f"Object {document_id} not found in {self._settings.bucket_name}",
                    provider_name=self.describe(),
                ) from exc
            raise ProviderUnavailableError(
                message=f"Failed to download {document_id}: {exc}",
                provider_name=self.describe(),
            ) from exc
        except BotoCoreError as exc:
            raise ProviderUnavailableError(
                message=f"Failed to download {document_id}: {exc}",
                provider_name=self.describe(),
            ) from exc

        logger.debug("s3_document_downloaded", key=document_id, size=len(data))
        return io.BytesIO(data)

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            provider_type=self.get_provider_type(),
            provider_name=self.get_provider_name(),
            is_enabled=self.is_enabled(),
            registered_at=datetime.now(timezone.utc),
            additional_info={
                "BucketName": self._settings.bucket_name,
                "Prefix": self._prefix or "(root)",
                "Region": self._settings.region,
                "AuthMode": self._settings.auth_mode,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_document(self, obj: dict[str, Any]) -> ProviderDocument | None:
        key: str = obj["Key"]
        if key.endswith("/"):
            return None
        filename = PurePosixPath(key).name
        if PurePosixPath(filename).suffix.lower() not in self._extensions:
            return None

        relative = key[len(self._prefix) :].lstrip("/") if self._prefix else key
        etag = obj.get("ETag")
        last_modified = obj.get("LastModified")
        if isinstance(last_modified, datetime) and last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)

        return ProviderDocument(
            document_id=key,
            filename=filename,
            provider_type=self.get_provider_type(),
            provider_name=self.get_provider_name(),
            etag=etag.strip('"') if etag else None,
            last_modified=last_modified,
            size_bytes=obj.get("Size"),
            mime_type=get_mime_type(filename),
            relative_path=relative,
        )
