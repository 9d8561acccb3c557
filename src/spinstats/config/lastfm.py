"""Credentials and pacing for the Last.fm API."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import int_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

LASTFM_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
# ``user.getrecenttracks`` serves at most this many scrobbles per page.
LASTFM_MAX_PAGE_SIZE = 200


def lastfm_resilience() -> ResilienceConfig:
    # Last.fm asks clients to stay below five requests per second.
    return ResilienceConfig(
        name="lastfm",
        base_url=LASTFM_BASE_URL,
        timeout_seconds=10.0,
        ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
    )


@dataclass(frozen=True)
class LastFmConfig:
    api_key: str
    user_name: str
    page_size: int = LASTFM_MAX_PAGE_SIZE
    resilience: ResilienceConfig = field(default_factory=lastfm_resilience)

    def __post_init__(self) -> None:
        if not 1 <= self.page_size <= LASTFM_MAX_PAGE_SIZE:
            raise ConfigurationError(
                f"Last.fm page size must be between 1 and {LASTFM_MAX_PAGE_SIZE}"
            )


def get_lastfm_config() -> LastFmConfig:
    """Read ``LASTFM_API_KEY``, ``LASTFM_USER_NAME`` and ``LASTFM_PAGE_SIZE``."""

    credentials = require_env_vars(("LASTFM_API_KEY", "LASTFM_USER_NAME"))
    return LastFmConfig(
        api_key=credentials["LASTFM_API_KEY"],
        user_name=credentials["LASTFM_USER_NAME"],
        page_size=int_env_var("LASTFM_PAGE_SIZE", LASTFM_MAX_PAGE_SIZE),
    )
