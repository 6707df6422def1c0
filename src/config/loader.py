"""YAML configuration loader with environment variable overrides.

# --- CONFIGURATION HIERARCHY ---------------------------------------------
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- static defaults checked into the repo
#   2. .env file           -- local overrides (not committed)
#   3. Environment vars    -- set by the deployment
#
# load_config() reads the YAML file first, then deep-merges the values from
# Settings (which already folds in .env and the environment) on top.
#
#   base      = {"sync": {"chunk_size": 800, "max_files": 50}}
#   overrides = {"sync": {"chunk_size": 1000}}
#   result    = {"sync": {"chunk_size": 1000, "max_files": 50}}
#
# Only fields that were explicitly set (environment, .env or constructor
# arguments) count as overrides, so a YAML value is not clobbered by an
# unset variable, while a variable set to the default value still wins.
# -------------------------------------------------------------------------
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings

# Settings field -> (section, key) in the YAML document.
_FIELD_MAP: dict[str, tuple[str, str]] = {
    "database_path": ("storage", "database_path"),
    "openai_api_key": ("embedding", "openai_api_key"),
    "openai_base_url": ("embedding", "openai_base_url"),
    "openai_embedding_model": ("embedding", "model"),
    "openai_embedding_batch_size": ("embedding", "batch_size"),
    "embedding_offline": ("embedding", "offline"),
    "offline_embedding_dimension": ("embedding", "offline_dimension"),
    "chunk_size": ("sync", "chunk_size"),
    "chunk_overlap": ("sync", "chunk_overlap"),
    "max_files": ("sync", "max_files"),
    "cleanup_orphaned_documents": ("sync", "cleanup_orphaned_documents"),
    "force_full_reindex": ("sync", "force_full_reindex"),
    "document_concurrency": ("sync", "document_concurrency"),
    "sync_interval_hours": ("schedule", "interval_hours"),
    "seed_providers_from_env": ("schedule", "seed_providers_from_env"),
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    explicit = settings.model_fields_set
    env_overrides: dict[str, dict[str, Any]] = {}
    for field_name, (section, key) in _FIELD_MAP.items():
        value = getattr(settings, field_name)
        section_values = yaml_config.get(section)
        in_yaml = isinstance(section_values, dict) and key in section_values
        if in_yaml and field_name not in explicit:
            continue
        env_overrides.setdefault(section, {})[key] = value

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def settings_from_config(config: dict) -> Settings:
    """Build a :class:`Settings` whose values come from a merged config dict."""
    values: dict[str, Any] = {}
    for field_name, (section, key) in _FIELD_MAP.items():
        section_values = config.get(section)
        if isinstance(section_values, dict) and key in section_values:
            values[field_name] = section_values[key]
    return Settings(**values)


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
