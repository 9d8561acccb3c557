from __future__ import annotations

from collections.abc import Callable  # noqa: TC003
from datetime import UTC, datetime

import httpx
import pytest

from spinstats.adapters.http_resilience import ResilientClient
from spinstats.adapters.lastfm import (
    LastFmAPIError,
    LastFmFetcher,
    RecentTracksResponse,
    TrackPayload,
    parse_listening,
)
from spinstats.config.errors import MissingConfigurationError
from spinstats.config.http_resilience import ResilienceConfig
from spinstats.config.lastfm import LastFmConfig, get_lastfm_config
from spinstats.domain.errors import ProviderUnavailableError


def _epoch(value: datetime) -> int:
    return int(value.timestamp())


def _scrobble(
    name: str,
    *,
    played_at: datetime | None = None,
    artist: str = "Sample Artist",
    album: str = "Sample Album",
    now_playing: bool = False,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "artist": {"mbid": "", "#text": artist},
        "album": {"mbid": "", "#text": album},
        "name": name,
        "url": "https://last.fm/track",
    }
    if played_at is not None:
        payload["date"] = {"uts": str(_epoch(played_at)), "#text": "ignored"}
    if now_playing:
        payload["@attr"] = {"nowplaying": "true"}
    return payload


def _page(tracks: list[dict[str, object]], *, page: int, total_pages: int) -> dict[str, object]:
    return {
        "recenttracks": {
            "track": tracks,
            "@attr": {
                "user": "listener",
                "totalPages": str(total_pages),
                "page": str(page),
                "perPage": "200",
                "total": str(len(tracks)),
            },
        }
    }


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory


def _fetcher(handler: Callable[[httpx.Request], httpx.Response]) -> LastFmFetcher:
    config = LastFmConfig(api_key="demo-key", user_name="listener", page_size=2)
    return LastFmFetcher(config=config, client_factory=_make_client_factory(handler))


# ----- translator -----


def test_parse_listening_reads_compact_payload() -> None:
    played = datetime(2024, 1, 7, 12, tzinfo=UTC)

    raw = parse_listening(_scrobble("Sample Track", played_at=played))

    assert (raw.track, raw.artist, raw.album) == ("Sample Track", "Sample Artist", "Sample Album")
    assert raw.played_at == played
    assert raw.duration_seconds == 0


def test_parse_listening_accepts_validated_payload_without_album() -> None:
    payload = _scrobble("No Album", played_at=datetime(2024, 1, 7, tzinfo=UTC))
    del payload["album"]

    raw = parse_listening(TrackPayload.model_validate(payload))

    assert raw.album == ""


def test_now_playing_uses_clock() -> None:
    now = datetime(2024, 5, 5, 5, 5, tzinfo=UTC)

    raw = parse_listening(_scrobble("Live", now_playing=True), clock=lambda: now)

    assert raw.played_at == now


def test_scrobble_without_timestamp_is_rejected() -> None:
    with pytest.raises(ValueError, match="no timestamp"):
        parse_listening(_scrobble("Nowhere"))


def test_single_track_page_is_wrapped_in_a_list() -> None:
    payload = _page([], page=1, total_pages=1)
    payload["recenttracks"]["track"] = _scrobble(  # type: ignore[index]
        "Only", played_at=datetime(2024, 1, 1, tzinfo=UTC)
    )

    response = RecentTracksResponse.model_validate(payload)

    assert [track.name for track in response.recenttracks.track] == ["Only"]
    assert response.recenttracks.attr.total_pages == 1


# ----- fetcher -----


def test_fetcher_walks_all_pages_and_skips_now_playing() -> None:
    requests: list[httpx.Request] = []
    pages = {
        "1": _page(
            [
                _scrobble("Live", now_playing=True),
                _scrobble("Second", played_at=datetime(2024, 1, 2, tzinfo=UTC)),
            ],
            page=1,
            total_pages=2,
        ),
        "2": _page(
            [_scrobble("First", played_at=datetime(2024, 1, 1, tzinfo=UTC))],
            page=2,
            total_pages=2,
        ),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=pages[request.url.params["page"]])

    result = _fetcher(handler)()

    assert [row.track for row in result.rows] == ["Second", "First"]  # type: ignore[union-attr]
    assert result.now_playing is not None
    assert result.now_playing.track == "Live"
    params = requests[0].url.params
    assert params["method"] == "user.getrecenttracks"
    assert params["user"] == "listener"
    assert params["api_key"] == "demo-key"
    assert params["limit"] == "2"
    assert "from" not in params
    assert [request.url.params["page"] for request in requests] == ["1", "2"]


def test_fetcher_requests_plays_strictly_after_since() -> None:
    since = datetime(2024, 3, 1, 8, tzinfo=UTC)
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params["from"])
        return httpx.Response(200, json=_page([], page=1, total_pages=1))

    result = _fetcher(handler)(since=since)

    assert seen == [str(_epoch(since) + 1)]
    assert result.rows == []


def test_fetcher_stops_at_max_rows() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        tracks = [
            _scrobble(f"Track {index}", played_at=datetime(2024, 1, index, tzinfo=UTC))
            for index in (2, 1)
        ]
        return httpx.Response(200, json=_page(tracks, page=1, total_pages=5))

    result = _fetcher(handler)(max_rows=1)

    assert len(result.rows) == 1
    assert calls == 1


def test_fetcher_skips_unusable_scrobbles() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        tracks = [
            _scrobble("Undated"),
            _scrobble("", played_at=datetime(2024, 1, 1, tzinfo=UTC)),
            _scrobble("Dated", played_at=datetime(2024, 1, 2, tzinfo=UTC)),
        ]
        return httpx.Response(200, json=_page(tracks, page=1, total_pages=1))

    result = _fetcher(handler)()

    assert [row.track for row in result.rows] == ["Dated"]  # type: ignore[union-attr]


def test_api_error_payload_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": 10, "message": "Invalid API key"})

    with pytest.raises(LastFmAPIError, match="Invalid API key") as exc:
        _fetcher(handler)()

    assert exc.value.code == 10


def test_http_failure_is_reported_as_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="<html>not here</html>")

    with pytest.raises(ProviderUnavailableError, match="Last.fm request failed") as exc:
        _fetcher(handler)()

    assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)


def test_malformed_page_is_reported_as_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"recenttracks": {"track": "not a list"}})

    with pytest.raises(LastFmAPIError, match="Malformed") as exc:
        _fetcher(handler)()

    assert isinstance(exc.value, ProviderUnavailableError)


def test_unexpected_payload_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"something": "else"})

    with pytest.raises(LastFmAPIError, match="Unexpected"):
        _fetcher(handler)()


def test_lastfm_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LASTFM_API_KEY", raising=False)
    monkeypatch.setenv("LASTFM_USER_NAME", "listener")

    with pytest.raises(MissingConfigurationError, match="LASTFM_API_KEY"):
        get_lastfm_config()


def test_lastfm_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LASTFM_API_KEY", "key")
    monkeypatch.setenv("LASTFM_USER_NAME", "listener")

    config = get_lastfm_config()

    assert (config.api_key, config.user_name) == ("key", "listener")
    assert config.resilience.ratelimit is not None
