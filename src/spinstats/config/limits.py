"""Defaults and bounds for ingest chunking and query sizes."""

from __future__ import annotations

from dataclasses import dataclass

from .env import int_env_var

DEFAULT_IMPORT_CHUNK_SIZE = 1000
MAX_IMPORT_CHUNK_SIZE = 10_000

DEFAULT_TOP_LIMIT = 10
MAX_TOP_LIMIT = 100

DEFAULT_RECENT_LIMIT = 100
MAX_RECENT_LIMIT = 1000

# Keys per IN clause when batching count lookups; keeps SQLite under its
# bound-parameter ceiling.
COUNT_LOOKUP_CHUNK_SIZE = 400


@dataclass(frozen=True, slots=True)
class IngestConfig:
    chunk_size: int = DEFAULT_IMPORT_CHUNK_SIZE
    max_chunk_size: int = MAX_IMPORT_CHUNK_SIZE


@dataclass(frozen=True, slots=True)
class QueryConfig:
    default_top_limit: int = DEFAULT_TOP_LIMIT
    max_top_limit: int = MAX_TOP_LIMIT
    default_recent_limit: int = DEFAULT_RECENT_LIMIT
    max_recent_limit: int = MAX_RECENT_LIMIT


def get_ingest_config() -> IngestConfig:
    return IngestConfig(
        chunk_size=int_env_var("SPINSTATS_IMPORT_CHUNK_SIZE", DEFAULT_IMPORT_CHUNK_SIZE),
    )


def get_query_config() -> QueryConfig:
    return QueryConfig()


def clamp_limit(value: int | None, *, default: int, maximum: int) -> int:
    """Return ``value`` when it lies in ``1..maximum``, otherwise ``default``."""

    if value is None or value <= 0 or value > maximum:
        return default
    return value
