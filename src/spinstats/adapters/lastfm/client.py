"""Fetch a user's scrobbles from the Last.fm ``user.getrecenttracks`` endpoint."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from spinstats.adapters.http_resilience import ResilientClient
from spinstats.config.lastfm import LASTFM_BASE_URL, get_lastfm_config
from spinstats.domain.errors import ProviderUnavailableError
from spinstats.domain.ports.fetching import HistoryFetchResult

from .schema import ErrorResponse, RecentTracks, RecentTracksResponse
from .translator import parse_listening

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from spinstats.config.http_resilience import ResilienceConfig
    from spinstats.config.lastfm import LastFmConfig
    from spinstats.domain.ingestion import RawListening
    from spinstats.domain.ports.fetching import HistoryFetcher

    from .schema import TrackPayload

log = getLogger(__name__)

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


class LastFmAPIError(ProviderUnavailableError):
    """Last.fm answered, but with an error payload or an unusable body."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def epoch_seconds(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp())


def decode_recent_tracks(response: httpx.Response) -> RecentTracks:
    """Validate one response body, raising for HTTP or API-level failures."""

    try:
        body = response.json()
    except ValueError:
        response.raise_for_status()
        raise LastFmAPIError("Last.fm returned a non-JSON response") from None

    if isinstance(body, dict) and "error" in body:
        try:
            failure = ErrorResponse.model_validate(body)
        except ValidationError as exc:
            raise LastFmAPIError("Malformed Last.fm error payload") from exc
        log.error("Last.fm API error %s: %s", failure.error, failure.message)
        raise LastFmAPIError(failure.message, code=failure.error)

    response.raise_for_status()
    if not isinstance(body, dict) or "recenttracks" not in body:
        raise LastFmAPIError("Unexpected Last.fm response payload")
    try:
        return RecentTracksResponse.model_validate(body).recenttracks
    except ValidationError as exc:
        raise LastFmAPIError("Malformed Last.fm recent tracks page") from exc


@dataclass(slots=True)
class LastFmFetcher:
    """``HistoryFetcher`` walking a user's scrobbles page by page, newest first."""

    config: LastFmConfig = field(default_factory=get_lastfm_config)
    client_factory: ClientFactory = field(default=ResilientClient)

    def __call__(
        self,
        *,
        since: datetime | None = None,
        max_rows: int | None = None,
    ) -> HistoryFetchResult:
        return asyncio.run(self.fetch(since=since, max_rows=max_rows))

    async def fetch(
        self,
        *,
        since: datetime | None = None,
        max_rows: int | None = None,
    ) -> HistoryFetchResult:
        result = HistoryFetchResult()
        try:
            async with aclosing(self._scrobbles(since)) as scrobbles:
                async for payload in scrobbles:
                    listening = self._translate(payload)
                    if payload.is_now_playing:
                        result.now_playing = listening
                    elif listening is not None:
                        result.rows.append(listening)
                        if max_rows is not None and len(result.rows) >= max_rows:
                            break
        except httpx.HTTPError as exc:
            log.error("Last.fm request failed: %s", exc)
            raise ProviderUnavailableError(f"Last.fm request failed: {exc}") from exc
        log.info("Fetched %d scrobbles from Last.fm", len(result.rows))
        return result

    async def _scrobbles(self, since: datetime | None) -> AsyncIterator[TrackPayload]:
        params: dict[str, str | int] = {
            "method": "user.getrecenttracks",
            "user": self.config.user_name,
            "api_key": self.config.api_key,
            "limit": self.config.page_size,
            "format": "json",
        }
        if since is not None:
            # ``from`` is inclusive; the latest stored play must not come back.
            params["from"] = epoch_seconds(since) + 1
        url = self.config.resilience.base_url or LASTFM_BASE_URL

        async with self.client_factory(self.config.resilience) as client:
            page, total_pages = 1, 1
            while page <= total_pages:
                query = httpx.QueryParams({**params, "page": page})
                response = await client.get(url, params=query)
                recent = decode_recent_tracks(response)
                total_pages = recent.attr.total_pages
                log.debug("Read Last.fm page %d of %d", page, total_pages)
                for payload in recent.track:
                    yield payload
                page += 1

    def _translate(self, payload: TrackPayload) -> RawListening | None:
        try:
            return parse_listening(payload)
        except (ValidationError, ValueError) as exc:
            log.warning("Skipping unusable scrobble %r: %s", payload.name, exc)
            return None


if TYPE_CHECKING:
    _fetcher_check: HistoryFetcher = LastFmFetcher()
