"""Translate Last.fm scrobbles into raw listening rows."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from spinstats.domain.ingestion import RawListening

from .schema import TrackPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from .schema import TrackPayloadInput

log = getLogger(__name__)


def _ensure_track_payload(scrobble: TrackPayloadInput) -> TrackPayload:
    if isinstance(scrobble, TrackPayload):
        return scrobble
    return TrackPayload.model_validate(scrobble)


def _resolve_played_at(payload: TrackPayload, clock: Callable[[], datetime]) -> datetime:
    if payload.date is not None:
        return datetime.fromtimestamp(payload.date.uts, tz=UTC)
    if payload.is_now_playing:
        return clock()
    raise ValueError(f"Scrobble of {payload.name!r} carries no timestamp")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_listening(
    scrobble: TrackPayloadInput,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> RawListening:
    """Build a ``RawListening`` from one scrobble.

    Last.fm does not report durations in recent tracks, so they stay at zero.
    """

    payload = _ensure_track_payload(scrobble)
    if not payload.album.title:
        log.debug("No album title for %r by %r", payload.name, payload.artist.name)
    return RawListening(
        track=payload.name,
        artist=payload.artist.name,
        album=payload.album.title,
        duration_seconds=0,
        played_at=_resolve_played_at(payload, clock),
    )
