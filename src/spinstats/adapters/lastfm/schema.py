"""Pydantic models for the ``user.getrecenttracks`` response body.

Last.fm encodes every number as a string; lax validation turns them into ints.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class LastFmModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ArtistPayload(LastFmModel):
    # ``{"#text": ...}`` in the compact response, ``{"name": ...}`` with ``extended=1``.
    name: str = Field(validation_alias=AliasChoices("name", "#text"))


class AlbumPayload(LastFmModel):
    title: str = Field(default="", alias="#text")


class TrackAttr(LastFmModel):
    nowplaying: bool = False


class DatePayload(LastFmModel):
    uts: int


class TrackPayload(LastFmModel):
    name: str
    artist: ArtistPayload
    album: AlbumPayload = Field(default_factory=AlbumPayload)
    date: DatePayload | None = None
    attr: TrackAttr | None = Field(default=None, alias="@attr")

    @property
    def is_now_playing(self) -> bool:
        return self.attr is not None and self.attr.nowplaying


class ResponseAttr(LastFmModel):
    user: str
    page: int
    total_pages: int = Field(alias="totalPages")
    per_page: int = Field(alias="perPage")
    total: int


class RecentTracks(LastFmModel):
    track: list[TrackPayload] = Field(default_factory=list[TrackPayload])
    attr: ResponseAttr = Field(alias="@attr")

    @field_validator("track", mode="before")
    @classmethod
    def _wrap_single(cls, value: object) -> object:
        # One scrobble on a page arrives as a bare object.
        return [value] if isinstance(value, Mapping) else value


class RecentTracksResponse(LastFmModel):
    recenttracks: RecentTracks


class ErrorResponse(LastFmModel):
    error: int
    message: str


type TrackPayloadInput = TrackPayload | Mapping[str, object]
