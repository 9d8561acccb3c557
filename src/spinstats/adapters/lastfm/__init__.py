"""Public interface for the Last.fm adapter."""

from __future__ import annotations

from .client import LastFmAPIError, LastFmFetcher
from .schema import RecentTracksResponse, TrackPayload, TrackPayloadInput
from .translator import parse_listening

__all__ = [
    "LastFmAPIError",
    "LastFmFetcher",
    "RecentTracksResponse",
    "TrackPayload",
    "TrackPayloadInput",
    "parse_listening",
]
