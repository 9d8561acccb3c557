"""Alembic entry point for the listening schema.

``upgrade_head`` hands over an open connection through ``config.attributes``;
the ``alembic`` command line falls back to the configured database URI.
"""

from __future__ import annotations

from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from spinstats.adapters.sqlalchemy.mappings import metadata, start_mappers
from spinstats.config.storage import get_database_config

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Connection

log = getLogger("alembic.env")

start_mappers()

# Batch mode lets SQLite alter tables by copying them.
_OPTIONS: dict[str, Any] = {
    "target_metadata": metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _database_url() -> str:
    return context.config.get_main_option("sqlalchemy.url") or get_database_config().uri


@contextmanager
def _connection() -> Iterator[Connection]:
    handed_over: Connection | None = context.config.attributes.get("connection")
    if handed_over is not None:
        yield handed_over
        return
    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as connection:
            yield connection
    finally:
        engine.dispose()


def _migrate(**options: Any) -> None:
    context.configure(**_OPTIONS, **options)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    log.info("Rendering listening migrations as SQL")
    _migrate(url=_database_url(), literal_binds=True)
else:
    with _connection() as connection:
        _migrate(connection=connection)
