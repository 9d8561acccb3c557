"""Environment-driven settings for storage, limits, logging and providers."""

from __future__ import annotations

from .env import bool_env_var, int_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .lastfm import LastFmConfig, get_lastfm_config
from .limits import (
    DEFAULT_IMPORT_CHUNK_SIZE,
    DEFAULT_RECENT_LIMIT,
    DEFAULT_TOP_LIMIT,
    MAX_IMPORT_CHUNK_SIZE,
    MAX_RECENT_LIMIT,
    MAX_TOP_LIMIT,
    IngestConfig,
    QueryConfig,
    clamp_limit,
    get_ingest_config,
    get_query_config,
)
from .logging import configure_logging
from .storage import DatabaseConfig, data_dir, get_database_config

__all__ = [
    "DEFAULT_IMPORT_CHUNK_SIZE",
    "DEFAULT_RECENT_LIMIT",
    "DEFAULT_TOP_LIMIT",
    "MAX_IMPORT_CHUNK_SIZE",
    "MAX_RECENT_LIMIT",
    "MAX_TOP_LIMIT",
    "ConfigurationError",
    "DatabaseConfig",
    "IngestConfig",
    "LastFmConfig",
    "MissingConfigurationError",
    "QueryConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "bool_env_var",
    "clamp_limit",
    "configure_logging",
    "data_dir",
    "get_database_config",
    "get_ingest_config",
    "get_lastfm_config",
    "get_query_config",
    "int_env_var",
    "require_env_var",
    "require_env_vars",
]
