"""Pull new plays from an external provider and return the refreshed recent list."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from spinstats.domain.aggregation.engine import AggregationEngine
from spinstats.domain.errors import InvalidArgumentError, SpinstatsError
from spinstats.domain.ingestion import IngestionReconciler

if TYPE_CHECKING:
    from collections.abc import Callable

    from spinstats.config.limits import IngestConfig, QueryConfig
    from spinstats.domain.model import ImportResult, RecentPlay
    from spinstats.domain.ports import HistoryFetcher, ListeningUnitOfWork

log = getLogger(__name__)


@dataclass(slots=True)
class HistorySyncResult:
    fetched: int
    import_result: ImportResult | None
    recent: list[RecentPlay]
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def sync_recent_history(
    fetcher: HistoryFetcher,
    unit_of_work_factory: Callable[[], ListeningUnitOfWork],
    *,
    limit: int | None = None,
    chunk_size: int | None = None,
    max_rows: int | None = None,
    ingest_config: IngestConfig | None = None,
    query_config: QueryConfig | None = None,
) -> HistorySyncResult:
    """Import plays newer than the latest stored one, then list recent plays.

    A provider or storage failure (any ``SpinstatsError`` other than bad
    arguments) does not fail the call: the error is logged and recorded on the
    result, and the locally stored recent plays are returned.
    """

    with unit_of_work_factory() as uow:
        latest = uow.repositories.listenings.last_record()
    since = latest.played_at if latest is not None else None
    log.info("Fetching plays since %s", since.isoformat() if since else "the beginning")

    fetched = 0
    import_result: ImportResult | None = None
    error: str | None = None
    try:
        fetch_result = fetcher(since=since, max_rows=max_rows)
        fetched = len(fetch_result.rows)
        if fetch_result.rows:
            reconciler = IngestionReconciler(unit_of_work_factory, config=ingest_config)
            import_result = reconciler.import_batch(fetch_result.rows, chunk_size=chunk_size)
    except InvalidArgumentError:
        raise
    except SpinstatsError as exc:
        log.exception("History sync failed")
        error = str(exc) or type(exc).__name__

    engine = AggregationEngine(unit_of_work_factory, query_config=query_config)
    recent = engine.recent_with_counts(limit)
    return HistorySyncResult(
        fetched=fetched,
        import_result=import_result,
        recent=recent,
        error=error,
    )


__all__ = ["HistorySyncResult", "sync_recent_history"]
