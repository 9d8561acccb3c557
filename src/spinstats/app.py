"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from spinstats.adapters.lastfm import LastFmFetcher
from spinstats.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from spinstats.config.limits import get_ingest_config, get_query_config
from spinstats.domain.aggregation.engine import AggregationEngine
from spinstats.domain.history_sync import HistorySyncResult, sync_recent_history
from spinstats.domain.ingestion import IngestionReconciler
from spinstats.domain.ports.unit_of_work import ListeningUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from spinstats.domain.ingestion import RawRow
    from spinstats.domain.model import ImportResult
    from spinstats.domain.ports.fetching import HistoryFetcher

UnitOfWorkFactory = Callable[[], ListeningUnitOfWork]


log = getLogger(__name__)


def default_unit_of_work_factory(*, database_uri: str | None = None) -> UnitOfWorkFactory:
    """Start the SQLAlchemy adapter if needed and return a unit-of-work factory."""

    if not is_started():
        startup(database_uri=database_uri)
    return partial(SqlAlchemyUnitOfWork, query_config=get_query_config())


def build_engine(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> AggregationEngine:
    return AggregationEngine(
        unit_of_work_factory or default_unit_of_work_factory(),
        query_config=get_query_config(),
    )


def import_listenings(
    rows: Iterable[RawRow],
    *,
    chunk_size: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ImportResult:
    """Validate and upsert raw rows through the ingestion reconciler."""

    reconciler = IngestionReconciler(
        unit_of_work_factory or default_unit_of_work_factory(),
        config=get_ingest_config(),
    )
    return reconciler.import_batch(rows, chunk_size=chunk_size)


def read_json_lines(path: Path) -> Iterator[bytes]:
    """Yield the non-blank lines of a JSON Lines file as raw bytes.

    UTF-8 and JSON decoding both happen during row validation so malformed
    lines are reported with their row number instead of aborting the import.
    """

    with path.open("rb") as handle:
        for line in handle:
            stripped = line.strip()
            if stripped:
                yield stripped


def sync_lastfm_history(
    *,
    fetcher: HistoryFetcher | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    limit: int | None = None,
    max_rows: int | None = None,
) -> HistorySyncResult:
    """Import new Last.fm scrobbles and return the refreshed recent plays."""

    effective_uow = unit_of_work_factory or default_unit_of_work_factory()
    effective_fetcher = fetcher or LastFmFetcher()
    log.info("Starting Last.fm sync: limit=%s, max_rows=%s", limit, max_rows)

    result = sync_recent_history(
        effective_fetcher,
        effective_uow,
        limit=limit,
        max_rows=max_rows,
        ingest_config=get_ingest_config(),
        query_config=get_query_config(),
    )

    imported = result.import_result.imported if result.import_result else 0
    log.info(
        f"Finished Last.fm sync: fetched={result.fetched}, imported={imported}, "
        f"recent={len(result.recent)}, error={result.error}"
    )
    return result
