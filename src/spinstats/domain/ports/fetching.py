"""Ports for fetching listening history from external providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from spinstats.domain.ingestion import RawListening


@dataclass(slots=True)
class HistoryFetchResult:
    """Plays fetched from an external provider, oldest-to-newest order not required."""

    rows: list[RawListening | Mapping[str, object]] = field(
        default_factory=list["RawListening | Mapping[str, object]"]
    )
    now_playing: RawListening | None = None


@runtime_checkable
class HistoryFetcher(Protocol):
    """Callable port returning plays strictly after ``since``.

    Provider failures are raised as ``ProviderUnavailableError``.
    """

    def __call__(
        self,
        *,
        since: datetime | None = None,
        max_rows: int | None = None,
    ) -> HistoryFetchResult: ...


__all__ = ["HistoryFetchResult", "HistoryFetcher"]
