"""Retry and rate-limit settings for outbound provider calls."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from spinstats import __version__

DEFAULT_USER_AGENT = f"spinstats/{__version__}"

# Transient failures worth another attempt; anything else surfaces at once.
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
RETRYABLE_ERRORS: tuple[type[httpx.HTTPError], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    attempts: int = 4
    backoff_factor: float = 0.5
    max_backoff_seconds: float = 30.0
    jitter: float = 1.0
    honour_retry_after: bool = True
    statuses: frozenset[int] = RETRYABLE_STATUSES
    errors: tuple[type[httpx.HTTPError], ...] = RETRYABLE_ERRORS


@dataclass(slots=True, frozen=True)
class RateLimit:
    """At most ``max_calls`` requests in any ``per_seconds`` window."""

    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    user_agent: str = DEFAULT_USER_AGENT
