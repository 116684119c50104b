"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .store import RecordStoreConfig, get_record_store_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RecordStoreConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "env_float",
    "get_database_config",
    "get_record_store_config",
    "get_storage_config",
    "get_sync_config",
    "require_env_vars",
]
