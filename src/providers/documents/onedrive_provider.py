"""OneDrive / SharePoint document provider via Microsoft Graph.

Authenticates with the OAuth2 client-credentials flow (tenant id, client id,
client secret), resolves the target drive once, then lists the children of
the configured folder following ``@odata.nextLink`` until the listing is
complete.  Only file items whose extension is allowed become documents; the
Graph item id is the document id and the item ``eTag`` the change token.

Drive resolution order:
    1. explicit ``drive_id``
    2. personal accounts         -> ``/me/drive``
    3. ``site_id`` (SharePoint)  -> ``/sites/{site_id}/drive``
    4. otherwise                 -> ConfigurationError

Uses an injected ``httpx.AsyncClient`` when given (tests pass one with a
``MockTransport``); otherwise creates and owns one.
"""

from __future__ import annotations

import io
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, BinaryIO
from urllib.parse import quote

import httpx
import structlog

from src.config.provider_settings import OneDriveProviderSettings
from src.interfaces.document_provider import IDocumentProvider
from src.models.documents import ProviderDocument, ProviderMetadata
from src.utils.errors import ConfigurationError, DocumentNotFoundError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
_GRAPH_SCOPE = "https://graph.microsoft.com/.default"
_TIMEOUT = 30.0
# Refresh the token this many seconds before it actually expires.
_TOKEN_EXPIRY_MARGIN = 60.0
_LIST_SELECT = "id,name,size,eTag,lastModifiedDateTime,file,folder,parentReference"


class OneDriveProvider(IDocumentProvider):
    """Document provider backed by a OneDrive / SharePoint drive folder."""

    def __init__(
        self,
        settings: OneDriveProviderSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._extensions = frozenset(settings.file_extensions)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=_TIMEOUT)
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._drive_id: str | None = settings.drive_id
        logger.info(
            "onedrive_provider_initialized",
            name=settings.name,
            account_type=settings.account_type,
            folder=settings.folder_path,
        )

    # ------------------------------------------------------------------
    # IDocumentProvider implementation
    # ------------------------------------------------------------------

    def get_provider_type(self) -> str:
        return OneDriveProviderSettings.provider_type

    def get_provider_name(self) -> str:
        return self._settings.name

    def is_enabled(self) -> bool:
        return self._settings.enabled

    async def list_documents(self) -> list[ProviderDocument]:
        drive_id = await self._resolve_drive_id()
        url: str | None = f"{_GRAPH_BASE_URL}/drives/{drive_id}/{self._folder_segment()}/children"
        params: dict[str, str] | None = {"$select": _LIST_SELECT, "$top": "200"}

        documents: list[ProviderDocument] = []
        pages = 0
        while url:
            payload = await self._get_json(url, params=params)
            pages += 1
            for item in payload.get("value", []):
                document = self._to_document(item)
                if document is not None:
                    documents.append(document)
            # nextLink already carries the query string.
            url = payload.get("@odata.nextLink")
            params = None

        logger.info("onedrive_documents_listed", provider=self.describe(), count=len(documents), pages=pages)
        return documents

    async def download_document(self, document_id: str) -> BinaryIO:
        drive_id = await self._resolve_drive_id()
        url = f"{_GRAPH_BASE_URL}/drives/{drive_id}/items/{quote(document_id, safe='')}/content"
        headers = await self._auth_headers()
        try:
            response = await self._client.get(url, headers=headers, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Graph download of {document_id} failed: {exc}",
                provider_name=self.describe(),
            ) from exc

        if response.status_code == 404:
            raise DocumentNotFoundError(
                message=f"Drive item {document_id} not found",
                provider_name=self.describe(),
            )
        self._raise_for_status(response, f"download of {document_id}")
        logger.debug("onedrive_document_downloaded", item_id=document_id, size=len(response.content))
        return io.BytesIO(response.content)

    async def get_metadata(self) -> ProviderMetadata:
        info = {
            "AccountType": self._settings.account_type,
            "FolderPath": self._settings.folder_path,
            "Extensions": ", ".join(self._settings.file_extensions),
        }
        if self._settings.site_id:
            info["SiteId"] = self._settings.site_id
        if self._drive_id:
            info["DriveId"] = self._drive_id
        return ProviderMetadata(
            provider_type=self.get_provider_type(),
            provider_name=self.get_provider_name(),
            is_enabled=self.is_enabled(),
            registered_at=datetime.now(timezone.utc),
            additional_info=info,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Graph plumbing
    # ------------------------------------------------------------------

    async def _resolve_drive_id(self) -> str:
        if self._drive_id:
            return self._drive_id

        if self._settings.account_type == "personal":
            url = f"{_GRAPH_BASE_URL}/me/drive"
        elif self._settings.site_id:
            url = f"{_GRAPH_BASE_URL}/sites/{self._settings.site_id}/drive"
        else:
            raise ConfigurationError(
                message="Cannot resolve drive: set drive_id or site_id for business accounts",
                provider_name=self.describe(),
            )

        payload = await self._get_json(url)
        drive_id = payload.get("id")
        if not drive_id:
            raise ProviderUnavailableError(
                message=f"Graph returned no drive id from {url}",
                provider_name=self.describe(),
            )
        self._drive_id = drive_id
        logger.info("onedrive_drive_resolved", provider=self.describe(), drive_id=drive_id)
        return drive_id

    async def _auth_headers(self) -> dict[str, str]:
        if self._access_token is None or time.monotonic() >= self._token_expires_at:
            await self._acquire_token()
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _acquire_token(self) -> None:
        url = _TOKEN_URL.format(tenant=self._settings.tenant_id)
        data = {
            "client_id": self._settings.client_id or "",
            "client_secret": self._settings.client_secret or "",
            "scope": _GRAPH_SCOPE,
            "grant_type": "client_credentials",
        }
        try:
            response = await self._client.post(url, data=data)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Token request failed: {exc}",
                provider_name=self.describe(),
            ) from exc
        self._raise_for_status(response, "token request")

        body = response.json()
        token = body.get("access_token")
        if not token:
            raise ProviderUnavailableError(
                message="Token response did not contain an access_token",
                provider_name=self.describe(),
            )
        self._access_token = token
        expires_in = float(body.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - _TOKEN_EXPIRY_MARGIN, 0.0)

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        headers = await self._auth_headers()
        try:
            response = await self._client.get(url, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Graph request to {url} failed: {exc}",
                provider_name=self.describe(),
            ) from exc
        self._raise_for_status(response, f"GET {url}")
        return response.json()

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        if response.status_code in (401, 403):
            # Force a fresh token next time in case it was revoked.
            self._access_token = None
        raise ProviderUnavailableError(
            message=f"Graph {action} returned HTTP {response.status_code}: {response.text[:200]}",
            provider_name=self.describe(),
        )

    def _folder_segment(self) -> str:
        folder = self._settings.folder_path.strip().strip("/")
        if not folder:
            return "root"
        return f"root:/{quote(folder)}:"

    def _to_document(self, item: dict[str, Any]) -> ProviderDocument | None:
        if "file" not in item:
            return None
        name: str = item.get("name", "")
        if PurePosixPath(name).suffix.lower() not in self._extensions:
            return None

        folder = self._settings.folder_path.strip().strip("/")
        return ProviderDocument(
            document_id=item["id"],
            filename=name,
            provider_type=self.get_provider_type(),
            provider_name=self.get_provider_name(),
            etag=item.get("eTag"),
            last_modified=item.get("lastModifiedDateTime"),
            size_bytes=item.get("size"),
            mime_type=(item.get("file") or {}).get("mimeType"),
            relative_path=f"{folder}/{name}" if folder else name,
        )
