"""Paced, retrying async HTTP client shared by provider adapters."""

from __future__ import annotations

from contextlib import nullcontext
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import Retry, RetryTransport

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager
    from types import TracebackType

    from spinstats.config.http_resilience import RateLimit, ResilienceConfig, RetryPolicy

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    # Only idempotent reads are ever retried.
    return Retry(
        total=policy.attempts,
        allowed_methods=("GET", "HEAD"),
        status_forcelist=tuple(sorted(policy.statuses)),
        retry_on_exceptions=policy.errors,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_seconds,
        backoff_jitter=policy.jitter,
        respect_retry_after_header=policy.honour_retry_after,
    )


def build_limiter(ratelimit: RateLimit | None) -> AsyncLimiter | None:
    if ratelimit is None:
        return None
    return AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds)


class ResilientClient:
    """``httpx.AsyncClient`` behind a retry transport and an optional rate limiter.

    Responses are never cached: history pages must always reflect the
    provider's current state.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = build_limiter(config.ratelimit)
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers={"User-Agent": config.user_agent},
            transport=RetryTransport(retry=build_retry(config.retry)),
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        url: str,
        *,
        params: httpx.QueryParams | None = None,
    ) -> httpx.Response:
        async with self._pace():
            response = await self._client.get(url, params=params)
        log.debug(
            "%s GET %s -> %d",
            self.config.name,
            response.request.url.path,
            response.status_code,
        )
        return response

    def _pace(self) -> AbstractAsyncContextManager[object]:
        if self._limiter is None:
            return nullcontext()
        return self._limiter
