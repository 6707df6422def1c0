"""Configuration module -- exports Settings, load_config and provider settings models."""

from src.config.loader import load_config, settings_from_config
from src.config.provider_settings import (
    BaseProviderSettings,
    LocalProviderSettings,
    OneDriveProviderSettings,
    S3ProviderSettings,
)
from src.config.settings import Settings

__all__ = [
    "BaseProviderSettings",
    "LocalProviderSettings",
    "OneDriveProviderSettings",
    "S3ProviderSettings",
    "Settings",
    "load_config",
    "settings_from_config",
]
