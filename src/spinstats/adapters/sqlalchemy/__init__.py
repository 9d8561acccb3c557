"""SQLAlchemy adapter package for spinstats."""

from __future__ import annotations

from .mappings import listening_table, mapper_registry, start_mappers
from .repositories import SqlAlchemyListeningStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyListeningStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "listening_table",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
