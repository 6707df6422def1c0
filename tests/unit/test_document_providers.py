"""Unit tests for document providers -- local filesystem, S3 and OneDrive.

S3 uses a MagicMock boto3 client; OneDrive runs against an
``httpx.MockTransport`` that emulates the Graph endpoints it calls.
"""

from __future__ import annotations

import io
import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from src.config.provider_settings import (
    LocalProviderSettings,
    OneDriveProviderSettings,
    S3ProviderSettings,
)
from src.models.documents import ProviderProbeRequest
from src.providers.documents.local_provider import LocalProvider, generate_document_id
from src.providers.documents.memory_provider import InMemoryDocumentProvider
from src.providers.documents.onedrive_provider import OneDriveProvider
from src.providers.documents.s3_provider import S3Provider
from src.utils.errors import ConfigurationError, DocumentNotFoundError, ProviderUnavailableError

# ======================================================================
# Local provider
# ======================================================================


def _local(root: Path, **overrides) -> LocalProvider:
    values = {"enabled": True, "name": "Files", "root_path": str(root), "file_extensions": [".txt", ".md"]}
    values.update(overrides)
    return LocalProvider(LocalProviderSettings(**values))


class TestLocalProvider:
    @pytest.mark.asyncio
    async def test_lists_matching_files_recursively(self, docs_dir: Path) -> None:
        provider = _local(docs_dir)
        docs = await provider.list_documents()

        assert sorted(d.relative_path for d in docs) == ["a.txt", "notes.md", "sub/b.txt"]
        assert all(d.provider_type == "local" and d.provider_name == "Files" for d in docs)

    @pytest.mark.asyncio
    async def test_non_recursive(self, docs_dir: Path) -> None:
        docs = await _local(docs_dir, recursive=False).list_documents()

        assert sorted(d.filename for d in docs) == ["a.txt", "notes.md"]

    @pytest.mark.asyncio
    async def test_exclude_patterns(self, docs_dir: Path) -> None:
        docs = await _local(docs_dir, exclude_patterns=["SUB/"]).list_documents()

        assert "sub/b.txt" not in {d.relative_path for d in docs}

    @pytest.mark.asyncio
    async def test_ids_are_stable_and_path_derived(self, docs_dir: Path) -> None:
        first = {d.relative_path: d.document_id for d in await _local(docs_dir).list_documents()}
        second = {d.relative_path: d.document_id for d in await _local(docs_dir).list_documents()}

        assert first == second
        assert first["sub/b.txt"] == generate_document_id("sub/b.txt")
        assert generate_document_id("sub\\b.txt") == generate_document_id("sub/b.txt")
        assert first["a.txt"].startswith("local_")

    @pytest.mark.asyncio
    async def test_edit_changes_etag_not_id(self, docs_dir: Path) -> None:
        provider = _local(docs_dir)
        before = {d.relative_path: d for d in await provider.list_documents()}["a.txt"]

        path = docs_dir / "a.txt"
        path.write_text("hello world, edited", encoding="utf-8")
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

        after = {d.relative_path: d for d in await provider.list_documents()}["a.txt"]
        assert after.document_id == before.document_id
        assert after.etag != before.etag

    @pytest.mark.asyncio
    async def test_download(self, docs_dir: Path) -> None:
        provider = _local(docs_dir)
        doc = next(d for d in await provider.list_documents() if d.filename == "a.txt")

        with await provider.download_document(doc.document_id) as stream:
            assert stream.read() == b"hello world"

    @pytest.mark.asyncio
    async def test_download_without_prior_listing(self, docs_dir: Path) -> None:
        provider = _local(docs_dir)

        with await provider.download_document(generate_document_id("sub/b.txt")) as stream:
            assert stream.read() == b"nested file"

    @pytest.mark.asyncio
    async def test_download_deleted_file(self, docs_dir: Path) -> None:
        provider = _local(docs_dir)
        doc = next(d for d in await provider.list_documents() if d.filename == "a.txt")
        (docs_dir / "a.txt").unlink()

        with pytest.raises(DocumentNotFoundError):
            await provider.download_document(doc.document_id)

    @pytest.mark.asyncio
    async def test_metadata(self, docs_dir: Path) -> None:
        meta = await _local(docs_dir).get_metadata()

        assert meta.provider_type == "local"
        assert meta.additional_info["RootPath"] == str(docs_dir)

    def test_missing_root_is_created(self, tmp_path: Path) -> None:
        root = tmp_path / "new" / "root"
        _local(root)

        assert root.is_dir()

    @pytest.mark.asyncio
    async def test_probe(self, docs_dir: Path) -> None:
        result = await _local(docs_dir).probe(ProviderProbeRequest(max_documents=1, max_preview_bytes=5))

        assert result.success is True
        assert len(result.documents) == 1
        assert result.documents[0].bytes_read <= 5


# ======================================================================
# S3 provider
# ======================================================================


def _s3_settings(**overrides) -> S3ProviderSettings:
    values = {
        "enabled": True,
        "name": "Archive",
        "bucketName": "docs-bucket",
        "prefix": "team/",
        "accessKeyId": "AKIA",
        "secretAccessKey": "secret",
        "fileExtensions": ["txt", ".PDF"],
    }
    values.update(overrides)
    return S3ProviderSettings(**values)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class TestS3Provider:
    @pytest.mark.asyncio
    async def test_follows_continuation_tokens(self) -> None:
        modified = datetime(2025, 2, 1, tzinfo=timezone.utc)
        client = MagicMock()
        client.list_objects_v2.side_effect = [
            {
                "Contents": [
                    {"Key": "team/a.txt", "ETag": '"abc"', "LastModified": modified, "Size": 3},
                    {"Key": "team/folder/", "Size": 0},
                    {"Key": "team/image.png", "ETag": '"png"', "Size": 9},
                ],
                "IsTruncated": True,
                "NextContinuationToken": "tok-1",
            },
            {
                "Contents": [{"Key": "team/sub/b.pdf", "ETag": '"def"', "LastModified": modified, "Size": 5}],
                "IsTruncated": False,
            },
        ]
        provider = S3Provider(_s3_settings(), client=client)

        docs = await provider.list_documents()

        assert [d.document_id for d in docs] == ["team/a.txt", "team/sub/b.pdf"]
        assert docs[0].etag == "abc"
        assert docs[1].relative_path == "sub/b.pdf"
        assert docs[1].mime_type == "application/pdf"
        second_call = client.list_objects_v2.call_args_list[1].kwargs
        assert second_call == {"Bucket": "docs-bucket", "Prefix": "team/", "ContinuationToken": "tok-1"}

    @pytest.mark.asyncio
    async def test_listing_failure_is_provider_unavailable(self) -> None:
        client = MagicMock()
        client.list_objects_v2.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        provider = S3Provider(_s3_settings(), client=client)

        with pytest.raises(ProviderUnavailableError, match="s3:Archive"):
            await provider.list_documents()

    @pytest.mark.asyncio
    async def test_download(self) -> None:
        client = MagicMock()
        client.get_object.return_value = {"Body": io.BytesIO(b"payload")}
        provider = S3Provider(_s3_settings(), client=client)

        stream = await provider.download_document("team/a.txt")

        assert stream.read() == b"payload"
        client.get_object.assert_called_once_with(Bucket="docs-bucket", Key="team/a.txt")

    @pytest.mark.asyncio
    async def test_missing_key_is_not_found(self) -> None:
        client = MagicMock()
        client.get_object.side_effect = _client_error("NoSuchKey")
        provider = S3Provider(_s3_settings(), client=client)

        with pytest.raises(DocumentNotFoundError):
            await provider.download_document("team/gone.txt")

    @pytest.mark.asyncio
    async def test_access_denied_is_provider_unavailable(self) -> None:
        client = MagicMock()
        client.get_object.side_effect = _client_error("AccessDenied")
        provider = S3Provider(_s3_settings(), client=client)

        with pytest.raises(ProviderUnavailableError):
            await provider.download_document("team/a.txt")

    @pytest.mark.asyncio
    async def test_metadata_reports_auth_mode(self) -> None:
        provider = S3Provider(_s3_settings(sessionToken="tok"), client=MagicMock())
        meta = await provider.get_metadata()

        assert meta.additional_info["AuthMode"] == "SessionToken"
        assert meta.additional_info["BucketName"] == "docs-bucket"

    @pytest.mark.asyncio
    async def test_probe_failure_is_reported_not_raised(self) -> None:
        client = MagicMock()
        client.list_objects_v2.side_effect = _client_error("AccessDenied")
        result = await S3Provider(_s3_settings(), client=client).probe()

        assert result.success is False
        assert "AccessDenied" in result.message


# ======================================================================
# OneDrive provider
# ======================================================================


class _FakeGraph:
    """Minimal Graph API emulation for MockTransport."""

    def __init__(self) -> None:
        self.token_requests = 0
        self.requests: list[httpx.Request] = []
        self.files = {"item-1": b"first file", "item-2": b"second file"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.url.host == "login.microsoftonline.com":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})

        assert request.headers["Authorization"] == "Bearer tok"
        if path == "/v1.0/sites/site-1/drive":
            return httpx.Response(200, json={"id": "drive-1"})
        if path.endswith("/children") and "skiptoken" not in str(request.url):
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "id": "item-1",
                            "name": "Report.DOCX",
                            "eTag": '"{A},1"',
                            "lastModifiedDateTime": "2025-02-01T10:00:00Z",
                            "size": 10,
                            "file": {"mimeType": "application/vnd.openxmlformats"},
                        },
                        {"id": "folder-1", "name": "Sub", "folder": {"childCount": 2}},
                        {"id": "item-3", "name": "photo.jpg", "file": {}},
                    ],
                    "@odata.nextLink": "https://graph.microsoft.com/v1.0/drives/drive-1/items/x/children?skiptoken=2",
                },
            )
        if path.endswith("/children"):
            return httpx.Response(
                200,
                json={"value": [{"id": "item-2", "name": "b.docx", "eTag": '"{B},3"', "file": {}}]},
            )
        if path.endswith("/content"):
            item_id = path.split("/")[-2]
            if item_id not in self.files:
                return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
            return httpx.Response(200, content=self.files[item_id])
        return httpx.Response(500, text="unexpected")


def _onedrive(graph, **overrides) -> OneDriveProvider:
    values = {
        "enabled": True,
        "name": "Team",
        "tenantId": "tenant",
        "clientId": "client",
        "clientSecret": "secret",
        "siteId": "site-1",
        "folderPath": "/Shared Documents/Docs",
    }
    values.update(overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(graph))
    return OneDriveProvider(OneDriveProviderSettings(**values), http_client=client)


class TestOneDriveProvider:
    @pytest.mark.asyncio
    async def test_lists_all_pages_and_filters(self) -> None:
        graph = _FakeGraph()
        provider = _onedrive(graph)

        docs = await provider.list_documents()

        assert [d.document_id for d in docs] == ["item-1", "item-2"]
        assert docs[0].etag == '"{A},1"'
        assert docs[0].last_modified == datetime(2025, 2, 1, 10, tzinfo=timezone.utc)
        assert docs[0].relative_path == "Shared Documents/Docs/Report.DOCX"
        assert graph.token_requests == 1

        children = next(r for r in graph.requests if r.url.path.endswith("/children"))
        assert children.url.raw_path.startswith(b"/v1.0/drives/drive-1/root:/Shared%20Documents/Docs:/children")

    @pytest.mark.asyncio
    async def test_download_and_not_found(self) -> None:
        provider = _onedrive(_FakeGraph())

        assert (await provider.download_document("item-2")).read() == b"second file"
        with pytest.raises(DocumentNotFoundError):
            await provider.download_document("missing")

    @pytest.mark.asyncio
    async def test_explicit_drive_id_skips_resolution(self) -> None:
        graph = _FakeGraph()
        provider = _onedrive(graph, driveId="drive-9", siteId=None)

        await provider.list_documents()

        assert not any(r.url.path.endswith("/drive") for r in graph.requests)

    @pytest.mark.asyncio
    async def test_token_failure_is_provider_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        provider = _onedrive(handler)

        with pytest.raises(ProviderUnavailableError, match="401"):
            await provider.list_documents()

    @pytest.mark.asyncio
    async def test_business_without_site_or_drive_is_configuration_error(self) -> None:
        settings = OneDriveProviderSettings(enabled=False, name="Team", tenant_id="t", client_id="c")
        client = httpx.AsyncClient(transport=httpx.MockTransport(_FakeGraph()))
        provider = OneDriveProvider(settings, http_client=client)

        with pytest.raises(ConfigurationError):
            await provider.list_documents()


# ======================================================================
# In-memory provider
# ======================================================================


class TestInMemoryProvider:
    @pytest.mark.asyncio
    async def test_put_list_download(self) -> None:
        provider = InMemoryDocumentProvider(name="mem")
        provider.put("d1", "a.txt", "hello", etag="1")

        docs = await provider.list_documents()
        assert [d.document_id for d in docs] == ["d1"]
        assert (await provider.download_document("d1")).read() == b"hello"
        assert provider.download_count == 1

    @pytest.mark.asyncio
    async def test_listing_failure_wraps_as_provider_unavailable(self) -> None:
        provider = InMemoryDocumentProvider()
        provider.fail_listing(RuntimeError("offline"))

        with pytest.raises(ProviderUnavailableError, match="offline"):
            await provider.list_documents()

    @pytest.mark.asyncio
    async def test_describe(self) -> None:
        assert InMemoryDocumentProvider(name="X", provider_type="memory").describe() == "memory:X"
