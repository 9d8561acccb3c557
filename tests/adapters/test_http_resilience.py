from __future__ import annotations

import asyncio

import httpx

from spinstats.adapters.http_resilience import ResilientClient, build_limiter, build_retry
from spinstats.config.http_resilience import RateLimit, ResilienceConfig, RetryPolicy


def test_build_retry_follows_policy() -> None:
    retry = build_retry(RetryPolicy(attempts=2, backoff_factor=0.1))

    assert retry.total == 2


def test_limiter_only_when_configured() -> None:
    assert build_limiter(None) is None
    limiter = build_limiter(RateLimit(max_calls=3, per_seconds=2.0))
    assert limiter is not None
    assert (limiter.max_rate, limiter.time_period) == (3, 2.0)


def test_client_sends_user_agent_and_closes() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    async def scenario() -> ResilientClient:
        config = ResilienceConfig(name="test", ratelimit=RateLimit(max_calls=10, per_seconds=1.0))
        client = ResilientClient(config)
        headers = client._client.headers  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            transport=httpx.MockTransport(handler), headers=headers
        )
        async with client:
            response = await client.get("https://example.test/page", params=httpx.QueryParams(a=1))
            assert response.json() == {"ok": True}
        return client

    client = asyncio.run(scenario())

    assert seen[0].headers["User-Agent"].startswith("spinstats/")
    assert seen[0].url.params["a"] == "1"
    assert client._client.is_closed  # noqa: SLF001  # type: ignore[reportPrivateUsage]
