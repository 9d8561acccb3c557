"""Ranked statistics and detail breakdowns over stored listening history."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from spinstats.config.limits import QueryConfig, clamp_limit
from spinstats.domain.aggregation.pipeline import PipelineBuilder
from spinstats.domain.errors import InvalidArgumentError, NotFoundError
from spinstats.domain.model import (
    AlbumDetail,
    ArtistDetail,
    RankedAlbum,
    RankedArtist,
    RankedTrack,
    RecentPlay,
)
from spinstats.domain.normalization import (
    credits_contain,
    matching_credit,
    normalize,
    primary_artist,
)
from spinstats.domain.time_windows import resolve_window

if TYPE_CHECKING:
    from collections.abc import Callable

    from spinstats.domain.aggregation.pipeline import Group, GroupKey
    from spinstats.domain.model import ListeningRecord
    from spinstats.domain.ports import ListeningUnitOfWork
    from spinstats.domain.time_windows import Bound

log = getLogger(__name__)


# ----- record predicates and keys -----


def _has_album_identity(record: ListeningRecord) -> bool:
    return bool(
        normalize(record.album) and normalize(record.track) and primary_artist(record.artist)
    )


def _has_primary_artist(record: ListeningRecord) -> bool:
    return bool(primary_artist(record.artist))


def _has_track_identity(record: ListeningRecord) -> bool:
    return bool(normalize(record.track) and primary_artist(record.artist))


def _has_track(record: ListeningRecord) -> bool:
    return bool(normalize(record.track))


def _album_key(record: ListeningRecord) -> GroupKey:
    return (normalize(record.album), normalize(primary_artist(record.artist)))


def _album_display(record: ListeningRecord) -> tuple[str, ...]:
    return (record.album.strip(), primary_artist(record.artist))


def _artist_key(record: ListeningRecord) -> GroupKey:
    return (normalize(primary_artist(record.artist)),)


def _artist_display(record: ListeningRecord) -> tuple[str, ...]:
    return (primary_artist(record.artist),)


def _track_key(record: ListeningRecord) -> GroupKey:
    return (normalize(record.track), normalize(primary_artist(record.artist)))


def _track_display(record: ListeningRecord) -> tuple[str, ...]:
    return (record.track.strip(), primary_artist(record.artist), record.album.strip())


# ----- projections -----


def _ranked_album(group: Group) -> RankedAlbum:
    title, artist = group.display
    return RankedAlbum(
        title=title,
        artist=artist,
        stream_count=group.stream_count,
        listening_time_seconds=group.listening_time_seconds,
        tracks=group.breakdown(),
    )


def _ranked_artist(group: Group) -> RankedArtist:
    (name,) = group.display
    return RankedArtist(
        name=name,
        stream_count=group.stream_count,
        listening_time_seconds=group.listening_time_seconds,
        tracks=group.breakdown(),
    )


def _ranked_track(group: Group) -> RankedTrack:
    title, artist, album = group.display
    return RankedTrack(
        title=title,
        artist=artist,
        album=album,
        stream_count=group.stream_count,
        listening_time_seconds=group.listening_time_seconds,
        last_listening=group.last_played,
    )


def _album_detail(group: Group) -> AlbumDetail:
    title, artist = group.display
    return AlbumDetail(
        title=title,
        artist=artist,
        stream_count=group.stream_count,
        total_duration_seconds=group.listening_time_seconds,
        tracks=group.breakdown(),
    )


def _artist_detail(group: Group) -> ArtistDetail:
    (name,) = group.display
    return ArtistDetail(
        name=name,
        stream_count=group.stream_count,
        total_duration_seconds=group.listening_time_seconds,
        tracks=group.breakdown(),
    )


def _require(value: str | None, label: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgumentError(f"{label} must not be blank")
    return value.strip()


class AggregationEngine:
    """Read-only statistics over the listening store.

    Every call opens its own unit of work; nothing is cached between calls.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ListeningUnitOfWork],
        *,
        query_config: QueryConfig | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._config = query_config or QueryConfig()

    def _top_limit(self, nb: int | None) -> int:
        limit = clamp_limit(
            nb,
            default=self._config.default_top_limit,
            maximum=self._config.max_top_limit,
        )
        if nb is not None and limit != nb:
            log.warning("Invalid nb %s, using %s", nb, limit)
        return limit

    # ----- top-N rankings -----

    def top_albums(
        self,
        nb: int | None = None,
        *,
        start: Bound | None = None,
        end: Bound | None = None,
    ) -> list[RankedAlbum]:
        window = resolve_window(start, end)
        limit = self._top_limit(nb)
        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            pipeline = (
                PipelineBuilder()
                .filter(store.filter_by_date(window))
                .filter(_has_album_identity, name="album identity")
                .normalize(key=_album_key, display=_album_display)
                .group(track_breakdown=True)
                .sort()
                .limit(limit)
                .project(_ranked_album)
            )
            albums = pipeline.run(store.scan(window))
        log.debug("Ranked %d albums for %s", len(albums), window)
        return albums

    def top_artists(
        self,
        nb: int | None = None,
        *,
        start: Bound | None = None,
        end: Bound | None = None,
    ) -> list[RankedArtist]:
        window = resolve_window(start, end)
        limit = self._top_limit(nb)
        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            pipeline = (
                PipelineBuilder()
                .filter(store.filter_by_date(window))
                .filter(_has_primary_artist, name="primary artist")
                .normalize(key=_artist_key, display=_artist_display)
                .group(track_breakdown=True)
                .sort()
                .limit(limit)
                .project(_ranked_artist)
            )
            artists = pipeline.run(store.scan(window))
        log.debug("Ranked %d artists for %s", len(artists), window)
        return artists

    def top_tracks(
        self,
        nb: int | None = None,
        *,
        start: Bound | None = None,
        end: Bound | None = None,
    ) -> list[RankedTrack]:
        window = resolve_window(start, end)
        limit = self._top_limit(nb)
        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            pipeline = (
                PipelineBuilder()
                .filter(store.filter_by_date(window))
                .filter(_has_track_identity, name="track identity")
                .normalize(key=_track_key, display=_track_display)
                .group()
                .sort()
                .limit(limit)
                .project(_ranked_track)
            )
            tracks = pipeline.run(store.scan(window))
        log.debug("Ranked %d tracks for %s", len(tracks), window)
        return tracks

    # ----- detail lookups -----

    def album_detail(
        self,
        title: str,
        artist: str,
        *,
        start: Bound | None = None,
        end: Bound | None = None,
    ) -> AlbumDetail:
        wanted_title = _require(title, "Album title")
        wanted_artist = _require(artist, "Artist")
        window = resolve_window(start, end)
        album_key = normalize(wanted_title)
        group_key = (album_key, normalize(wanted_artist))

        def matches(record: ListeningRecord) -> bool:
            return normalize(record.album) == album_key and credits_contain(
                record.artist, wanted_artist
            )

        def display(record: ListeningRecord) -> tuple[str, ...]:
            credit = matching_credit(record.artist, wanted_artist) or wanted_artist
            return (record.album.strip(), credit)

        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            pipeline = (
                PipelineBuilder()
                .filter(store.filter_by_date(window))
                .filter(_has_track, name="track")
                .filter(matches, name="album credit")
                .normalize(key=lambda _record: group_key, display=display)
                .group(track_breakdown=True)
                .project(_album_detail)
            )
            details = pipeline.run(store.scan(window, album=wanted_title, artist=wanted_artist))
        if not details:
            raise NotFoundError(f"No plays of album {wanted_title!r} by {wanted_artist!r}")
        return details[0]

    def artist_detail(
        self,
        name: str,
        *,
        start: Bound | None = None,
        end: Bound | None = None,
    ) -> ArtistDetail:
        wanted = _require(name, "Artist name")
        window = resolve_window(start, end)
        group_key = (normalize(wanted),)

        def display(record: ListeningRecord) -> tuple[str, ...]:
            return (matching_credit(record.artist, wanted) or wanted,)

        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            pipeline = (
                PipelineBuilder()
                .filter(store.filter_by_date(window))
                .filter(_has_track, name="track")
                .filter(lambda record: credits_contain(record.artist, wanted), name="credit")
                .normalize(key=lambda _record: group_key, display=display)
                .group(track_breakdown=True)
                .project(_artist_detail)
            )
            details = pipeline.run(store.scan(window, artist=wanted))
        if not details:
            raise NotFoundError(f"No plays credited to {wanted!r}")
        return details[0]

    # ----- recent history and search -----

    def recent_with_counts(self, limit: int | None = None) -> list[RecentPlay]:
        """Most recent plays, each with the all-time play count of its track.

        Counts come from a single batched lookup rather than one query per play.
        """

        with self._unit_of_work_factory() as uow:
            store = uow.repositories.listenings
            records = store.recent(limit)
            counts = store.count_by_normalized_key(
                {(record.artist, record.track) for record in records}
            )
        return [
            RecentPlay(record=record, total_plays=counts.get(record.count_key, 0))
            for record in records
        ]

    def search_albums(self, query: str) -> dict[str, list[str]]:
        needle = _require(query, "Search query")
        with self._unit_of_work_factory() as uow:
            return uow.repositories.listenings.search_albums(needle)

    def search_artists(self, query: str) -> list[str]:
        needle = _require(query, "Search query")
        with self._unit_of_work_factory() as uow:
            return uow.repositories.listenings.search_artists(needle)


__all__ = ["AggregationEngine"]
