"""Incremental document sync services.

    TextChunker                    -- overlapping fixed-size character windows
    ChangeDetector / SyncPlan      -- listing vs tracked-state diff
    TextExtractionService          -- extension -> extractor dispatch
    SyncEngine                     -- one pass over all enabled providers
    ProviderFactory                -- settings records -> provider instances
    ProviderConfigurationService   -- cached, immutable provider snapshots
    ProviderSettingsSeeder         -- settings records from environment vars
    ScheduledSyncService           -- periodic driver for sync passes
"""

from src.services.sync.change_detector import ChangeDetector, SyncPlan
from src.services.sync.chunker import TextChunker, iter_chunks
from src.services.sync.provider_configuration_service import (
    ProviderConfigurationService,
    ProviderConfigurationSnapshot,
)
from src.services.sync.provider_factory import ProviderFactory
from src.services.sync.provider_settings_seeder import ProviderSettingsSeeder
from src.services.sync.scheduler import ScheduledSyncService
from src.services.sync.sync_engine import SyncEngine
from src.services.sync.text_extraction_service import TextExtractionService

__all__ = [
    "ChangeDetector",
    "ProviderConfigurationService",
    "ProviderConfigurationSnapshot",
    "ProviderFactory",
    "ProviderSettingsSeeder",
    "ScheduledSyncService",
    "SyncEngine",
    "SyncPlan",
    "TextChunker",
    "TextExtractionService",
    "iter_chunks",
]
