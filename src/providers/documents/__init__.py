"""Document provider implementations.

Each implementation of IDocumentProvider serves one kind of source:
    LocalProvider            -- a directory tree on the local filesystem
    S3Provider               -- an S3 bucket, optionally under a key prefix
    OneDriveProvider         -- a OneDrive / SharePoint folder via Graph
    InMemoryDocumentProvider -- dict-backed fake used by tests

Instances are built from stored settings by
:class:`~src.services.sync.provider_factory.ProviderFactory`.
"""

from src.providers.documents.local_provider import LocalProvider
from src.providers.documents.memory_provider import InMemoryDocumentProvider
from src.providers.documents.onedrive_provider import OneDriveProvider
from src.providers.documents.s3_provider import S3Provider

__all__ = ["InMemoryDocumentProvider", "LocalProvider", "OneDriveProvider", "S3Provider"]
