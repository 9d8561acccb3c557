"""Listening store backed by a SQLAlchemy session."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager, nullcontext
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import func, select, tuple_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from spinstats.adapters.sqlalchemy.mappings import listening_table
from spinstats.config.limits import COUNT_LOOKUP_CHUNK_SIZE, QueryConfig, clamp_limit
from spinstats.domain.aggregation.pipeline import Filter
from spinstats.domain.errors import StorageUnavailableError
from spinstats.domain.model import ListeningRecord, UpsertFailure, UpsertReport
from spinstats.domain.normalization import COUNT_KEY_SEPARATOR, normalize

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence
    from contextlib import AbstractContextManager

    from sqlalchemy.orm import Session
    from sqlalchemy.sql import ColumnElement

    from spinstats.domain.time_windows import DateWindow

log = logging.getLogger(__name__)

_columns = listening_table.c


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        log.exception("Listening store %s failed", operation)
        raise StorageUnavailableError(f"Listening store {operation} failed: {exc}") from exc


def _row_values(record: ListeningRecord, new_id: uuid.UUID) -> dict[str, Any]:
    return {
        "id": new_id,
        "track": record.track,
        "artist": record.artist,
        "album": record.album,
        "duration_seconds": record.duration_seconds or 0,
        "played_at": record.played_at,
        "track_key": normalize(record.track),
        "artist_key": normalize(record.artist),
        "album_key": normalize(record.album),
    }


class SqlAlchemyListeningStore:
    """``ListeningStore`` implementation for SQLite and PostgreSQL."""

    def __init__(self, session: Session, *, query_config: QueryConfig | None = None) -> None:
        self.session = session
        self._config = query_config or QueryConfig()

    # ----- writes -----

    def upsert_batch(self, records: Sequence[ListeningRecord]) -> UpsertReport:
        """Insert or update each record by its listening key.

        Each record runs as one ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``
        statement. A rejected record is reported and the rest of the batch proceeds.
        """

        report = UpsertReport()
        with _storage_errors("upsert"):
            insert = self._dialect_insert()
            for index, record in enumerate(records):
                new_id = uuid.uuid4()
                stmt = insert(listening_table).values(**_row_values(record, new_id))
                stmt = stmt.on_conflict_do_update(
                    index_elements=[
                        _columns.track_key,
                        _columns.artist_key,
                        _columns.album,
                        _columns.played_at,
                    ],
                    set_={
                        "track": stmt.excluded.track,
                        "artist": stmt.excluded.artist,
                        "duration_seconds": stmt.excluded.duration_seconds,
                        "album_key": stmt.excluded.album_key,
                    },
                ).returning(_columns.id)
                try:
                    with self._record_isolation():
                        stored_id = self.session.execute(stmt).scalar_one()
                except (OperationalError, InterfaceError):
                    raise
                except SQLAlchemyError as exc:
                    log.warning("Rejected listening record %d: %s", index, exc)
                    report.failures.append(
                        UpsertFailure(index=index, message=str(getattr(exc, "orig", None) or exc))
                    )
                    continue
                if stored_id == new_id:
                    report.inserted += 1
                else:
                    report.updated += 1
                record.id = stored_id
        log.debug(
            "Upserted %d records (%d inserted, %d updated, %d failed)",
            len(records),
            report.inserted,
            report.updated,
            len(report.failures),
        )
        return report

    def _dialect_insert(self) -> Any:
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise StorageUnavailableError(f"Upserts are not supported on {dialect!r}")

    def _record_isolation(self) -> AbstractContextManager[object]:
        # pysqlite keeps going after a failed statement; other backends abort the
        # surrounding transaction unless the record runs in a savepoint.
        if self.session.get_bind().dialect.name == "sqlite":
            return nullcontext()
        return self.session.begin_nested()

    # ----- reads -----

    def last_record(self) -> ListeningRecord | None:
        stmt = (
            select(ListeningRecord)
            .order_by(_columns.played_at.desc(), _columns.id.desc())
            .limit(1)
        )
        with _storage_errors("last_record"):
            return self.session.scalars(stmt).first()

    def recent(self, limit: int | None = None) -> list[ListeningRecord]:
        size = clamp_limit(
            limit,
            default=self._config.default_recent_limit,
            maximum=self._config.max_recent_limit,
        )
        stmt = (
            select(ListeningRecord)
            .order_by(_columns.played_at.desc(), _columns.id.desc())
            .limit(size)
        )
        with _storage_errors("recent"):
            return list(self.session.scalars(stmt))

    def filter_by_date(self, window: DateWindow) -> Filter:
        return Filter(lambda record: window.contains(record.played_at), name="date window")

    def scan(
        self,
        window: DateWindow,
        *,
        album: str | None = None,
        artist: str | None = None,
    ) -> Iterator[ListeningRecord]:
        """Yield records in chronological order.

        ``album`` and ``artist`` narrow the query coarsely (exact normalized album,
        artist credit substring); callers still check credits exactly.
        """

        conditions: list[ColumnElement[bool]] = []
        if window.lower is not None:
            conditions.append(_columns.played_at >= window.lower)
        if window.upper is not None:
            conditions.append(_columns.played_at <= window.upper)
        if album is not None:
            conditions.append(_columns.album_key == normalize(album))
        if artist is not None:
            conditions.append(_columns.artist_key.contains(normalize(artist), autoescape=True))
        stmt = (
            select(ListeningRecord)
            .where(*conditions)
            .order_by(_columns.played_at.asc(), _columns.id.asc())
        )
        with _storage_errors("scan"):
            yield from self.session.scalars(stmt)

    def count_by_normalized_key(self, keys: Collection[tuple[str, str]]) -> dict[str, int]:
        """Historical play counts keyed by ``"<artist>|<track>"`` (both normalized).

        ``keys`` holds raw ``(artist, track)`` pairs; one query runs per chunk of
        distinct pairs.
        """

        normalized = sorted({(normalize(artist), normalize(track)) for artist, track in keys})
        counts: dict[str, int] = {}
        with _storage_errors("count_by_normalized_key"):
            for offset in range(0, len(normalized), COUNT_LOOKUP_CHUNK_SIZE):
                chunk = normalized[offset : offset + COUNT_LOOKUP_CHUNK_SIZE]
                stmt = (
                    select(_columns.artist_key, _columns.track_key, func.count())
                    .where(tuple_(_columns.artist_key, _columns.track_key).in_(chunk))
                    .group_by(_columns.artist_key, _columns.track_key)
                )
                for artist_key, track_key, total in self.session.execute(stmt):
                    counts[f"{artist_key}{COUNT_KEY_SEPARATOR}{track_key}"] = int(total)
        return counts

    def count(self) -> int:
        stmt = select(func.count()).select_from(listening_table)
        with _storage_errors("count"):
            return int(self.session.execute(stmt).scalar_one())

    # ----- search -----

    def search_albums(self, query: str) -> dict[str, list[str]]:
        stmt = (
            select(_columns.album, _columns.artist)
            .where(_columns.album_key.contains(normalize(query), autoescape=True))
            .distinct()
            .order_by(_columns.album, _columns.artist)
        )
        albums: dict[str, list[str]] = {}
        with _storage_errors("search_albums"):
            for album, artist in self.session.execute(stmt):
                albums.setdefault(cast(str, album), []).append(cast(str, artist))
        return albums

    def search_artists(self, query: str) -> list[str]:
        stmt = (
            select(_columns.artist)
            .where(_columns.artist_key.contains(normalize(query), autoescape=True))
            .distinct()
            .order_by(_columns.artist)
        )
        with _storage_errors("search_artists"):
            return list(self.session.scalars(stmt))
