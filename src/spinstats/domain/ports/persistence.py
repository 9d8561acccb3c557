"""Ports for persisting and querying listening history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence

    from spinstats.domain.aggregation.pipeline import Filter
    from spinstats.domain.model import ListeningRecord, UpsertReport
    from spinstats.domain.time_windows import DateWindow


@runtime_checkable
class ListeningStore(Protocol):
    """Persistence contract for listening records.

    The store is the only writer of records and every write is an idempotent
    upsert. Implementations surface backend failures as
    ``StorageUnavailableError``.
    """

    def upsert_batch(self, records: Sequence[ListeningRecord]) -> UpsertReport: ...

    def last_record(self) -> ListeningRecord | None: ...

    def recent(self, limit: int | None = None) -> list[ListeningRecord]: ...

    def filter_by_date(self, window: DateWindow) -> Filter: ...

    def scan(
        self,
        window: DateWindow,
        *,
        album: str | None = None,
        artist: str | None = None,
    ) -> Iterator[ListeningRecord]: ...

    def count_by_normalized_key(self, keys: Collection[tuple[str, str]]) -> dict[str, int]: ...

    def count(self) -> int: ...

    def search_albums(self, query: str) -> dict[str, list[str]]: ...

    def search_artists(self, query: str) -> list[str]: ...
