from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import pytest

from spinstats.adapters.http_resilience import ResilientClient
from spinstats.adapters.lastfm import LastFmFetcher
from spinstats.app import sync_lastfm_history
from spinstats.config.lastfm import LastFmConfig
from tests.helpers.listenings import make_record

if TYPE_CHECKING:
    from collections.abc import Callable

    from spinstats.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from spinstats.config.http_resilience import ResilienceConfig

pytestmark = pytest.mark.integration


def _scrobble(name: str, artist: str, played_at: datetime) -> dict[str, object]:
    return {
        "artist": {"#text": artist},
        "album": {"#text": "Live Album"},
        "name": name,
        "date": {"uts": str(int(played_at.timestamp()))},
    }


def _fetcher(requests: list[httpx.Request], tracks: list[dict[str, object]]) -> LastFmFetcher:
    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        payload = {
            "recenttracks": {
                "track": tracks,
                "@attr": {
                    "user": "listener",
                    "totalPages": "1",
                    "page": "1",
                    "perPage": "200",
                    "total": str(len(tracks)),
                },
            }
        }
        return httpx.Response(200, json=payload)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    config = LastFmConfig(api_key="demo", user_name="listener")
    return LastFmFetcher(config=config, client_factory=factory)


def test_sync_persists_scrobbles_and_counts_history(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    store_records: Callable[..., None],
) -> None:
    latest = datetime(2024, 6, 1, 12, tzinfo=UTC)
    store_records(make_record("Anthem", "Crowd", "Live Album", played_at=latest))
    requests: list[httpx.Request] = []
    fetcher = _fetcher(
        requests,
        [
            _scrobble("anthem", "CROWD", datetime(2024, 6, 2, 20, tzinfo=UTC)),
            _scrobble("Encore", "Crowd", datetime(2024, 6, 2, 21, tzinfo=UTC)),
        ],
    )

    result = sync_lastfm_history(
        fetcher=fetcher,
        unit_of_work_factory=sqlite_unit_of_work,
        limit=10,
    )

    assert result.succeeded
    assert requests[0].url.params["from"] == str(int(latest.timestamp()) + 1)
    assert result.import_result is not None
    assert result.import_result.inserted == 2
    assert [(play.record.track, play.total_plays) for play in result.recent] == [
        ("Encore", 1),
        ("anthem", 2),
        ("Anthem", 2),
    ]


def test_sync_survives_provider_outage(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    store_records: Callable[..., None],
) -> None:
    store_records(make_record("Stored", played_at=datetime(2024, 1, 1, tzinfo=UTC)))

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": 29, "message": "Rate limit exceeded"})

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    fetcher = LastFmFetcher(
        config=LastFmConfig(api_key="demo", user_name="listener"), client_factory=factory
    )

    result = sync_lastfm_history(fetcher=fetcher, unit_of_work_factory=sqlite_unit_of_work)

    assert result.error == "Rate limit exceeded"
    assert [play.record.track for play in result.recent] == ["Stored"]
