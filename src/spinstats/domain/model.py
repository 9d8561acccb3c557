"""Domain model for listening history and the statistics derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003 # UUID is needed at runtime (SQLAlchemy)

from spinstats.domain.normalization import (
    ListeningKey,
    count_key,
    featured_artists,
    listening_key,
    primary_artist,
)

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(kw_only=True)
class ListeningRecord:
    """A single play of a track, as persisted by the listening store.

    ``track``, ``artist`` and ``album`` keep the casing they were captured with;
    ``artist`` may credit several artists (``"A, B & C"``). ``id`` is assigned on
    first insert and never changes afterwards.
    """

    track: str
    artist: str
    album: str
    played_at: datetime
    duration_seconds: int = 0
    id: UUID | None = None

    @property
    def primary_artist(self) -> str:
        return primary_artist(self.artist)

    @property
    def featured_artists(self) -> list[str]:
        return featured_artists(self.artist)

    @property
    def key(self) -> ListeningKey:
        return listening_key(self.track, self.artist, self.album, self.played_at)

    @property
    def count_key(self) -> str:
        return count_key(self.artist, self.track)


@dataclass(frozen=True, slots=True)
class TrackBreakdown:
    """Plays of one track inside an album or artist aggregate."""

    title: str
    stream_count: int
    listening_time_seconds: int


def _per_track_counts(tracks: tuple[TrackBreakdown, ...]) -> dict[str, int]:
    return {track.title: track.stream_count for track in tracks}


@dataclass(frozen=True, slots=True)
class RankedAlbum:
    title: str
    artist: str
    stream_count: int
    listening_time_seconds: int
    tracks: tuple[TrackBreakdown, ...] = ()

    @property
    def per_track_counts(self) -> dict[str, int]:
        return _per_track_counts(self.tracks)


@dataclass(frozen=True, slots=True)
class RankedArtist:
    name: str
    stream_count: int
    listening_time_seconds: int
    tracks: tuple[TrackBreakdown, ...] = ()

    @property
    def per_track_counts(self) -> dict[str, int]:
        return _per_track_counts(self.tracks)


@dataclass(frozen=True, slots=True)
class RankedTrack:
    title: str
    artist: str
    album: str
    stream_count: int
    listening_time_seconds: int
    last_listening: datetime | None = None


@dataclass(frozen=True, slots=True)
class AlbumDetail:
    """Full per-track breakdown of one album (title plus credited artist)."""

    title: str
    artist: str
    stream_count: int
    total_duration_seconds: int
    tracks: tuple[TrackBreakdown, ...] = ()

    @property
    def listening_time_seconds(self) -> int:
        return self.total_duration_seconds

    @property
    def per_track_counts(self) -> dict[str, int]:
        return _per_track_counts(self.tracks)


@dataclass(frozen=True, slots=True)
class ArtistDetail:
    """Full per-track breakdown of every play crediting one artist."""

    name: str
    stream_count: int
    total_duration_seconds: int
    tracks: tuple[TrackBreakdown, ...] = ()

    @property
    def listening_time_seconds(self) -> int:
        return self.total_duration_seconds

    @property
    def per_track_counts(self) -> dict[str, int]:
        return _per_track_counts(self.tracks)


@dataclass(frozen=True, slots=True)
class RecentPlay:
    """A recent play alongside the all-time play count of the same track."""

    record: ListeningRecord
    total_plays: int


@dataclass(slots=True)
class UpsertFailure:
    index: int
    message: str


@dataclass(slots=True)
class UpsertReport:
    """Outcome of ``ListeningStore.upsert_batch``; failures are data, not exceptions."""

    inserted: int = 0
    updated: int = 0
    failures: list[UpsertFailure] = field(default_factory=list[UpsertFailure])

    @property
    def persisted(self) -> int:
        return self.inserted + self.updated


@dataclass(slots=True)
class ImportResult:
    """Summary of an ingestion run.

    ``imported`` and ``skipped`` are tracked independently; a correct run always
    satisfies ``imported + skipped == total_rows``.
    """

    total_rows: int = 0
    processed: int = 0
    imported: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list[str])
    processing_time: timedelta = field(default_factory=timedelta)

    @property
    def success_rate(self) -> float:
        if self.total_rows <= 0:
            return 0.0
        return self.imported / self.total_rows * 100


__all__ = [
    "AlbumDetail",
    "ArtistDetail",
    "ImportResult",
    "ListeningRecord",
    "RankedAlbum",
    "RankedArtist",
    "RankedTrack",
    "RecentPlay",
    "TrackBreakdown",
    "UpsertFailure",
    "UpsertReport",
]
