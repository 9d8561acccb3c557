"""Table definition for listening records and their imperative mapping."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from functools import cache
from logging import getLogger

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import configure_mappers, registry

from spinstats.domain.model import ListeningRecord

log = getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is UTC:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UtcTimestamp(TypeDecorator[datetime]):
    """Timestamp stored in UTC and always loaded as an aware datetime.

    SQLite keeps no offset, so values are normalized on the way in and
    re-labelled as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        del dialect
        return _as_utc(value)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        del dialect
        return _as_utc(value)


metadata = MetaData(
    naming_convention={
        "pk": "pk_%(table_name)s",
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
    }
)
mapper_registry = registry(metadata=metadata)

# Normalized lookup columns backing the upsert key and query push-down. The
# store writes them; they are never mapped onto the domain object.
KEY_COLUMNS = ("track_key", "artist_key", "album_key")

listening_table = Table(
    "listening",
    metadata,
    Column("id", Uuid(), primary_key=True, default=uuid.uuid4),
    Column("track", String, nullable=False),
    Column("artist", String, nullable=False),
    Column("album", String, nullable=False, default=""),
    Column("duration_seconds", Integer, nullable=False, default=0),
    Column("played_at", UtcTimestamp(), nullable=False),
    *(Column(name, String, nullable=False) for name in KEY_COLUMNS),
    UniqueConstraint("track_key", "artist_key", "album", "played_at", name="uq_listening_identity"),
    Index("ix_listening_played_at", "played_at"),
    Index("ix_listening_artist_key", "artist_key"),
    Index("ix_listening_album_key", "album_key"),
)


@cache
def start_mappers() -> registry:
    """Map ``ListeningRecord`` onto ``listening``; later calls are no-ops."""

    log.debug("Mapping ListeningRecord onto %s", listening_table.name)
    mapper_registry.map_imperatively(
        ListeningRecord,
        listening_table,
        exclude_properties=KEY_COLUMNS,
    )
    configure_mappers()
    return mapper_registry
