"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .feed import FeedSettings, TableTaxonomy, get_feed_settings
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_http_cache_path,
    get_storage_config,
)
from .supabase import SupabaseConfig, get_supabase_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "FeedSettings",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SupabaseConfig",
    "TableTaxonomy",
    "configure_logging",
    "get_database_config",
    "get_feed_settings",
    "get_http_cache_path",
    "get_storage_config",
    "get_supabase_config",
    "require_env_var",
    "require_env_vars",
]
