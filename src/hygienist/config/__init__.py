"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_float, optional_env_int
from .errors import ConfigurationError
from .hygiene import MAX_BATCH_SIZE, HygieneConfig, get_hygiene_config
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "MAX_BATCH_SIZE",
    "ConfigurationError",
    "DatabaseConfig",
    "HygieneConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_hygiene_config",
    "get_storage_config",
    "optional_env_float",
    "optional_env_int",
]
