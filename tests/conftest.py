from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from spinstats.adapters.sqlalchemy import start_mappers
from spinstats.adapters.sqlalchemy.migrations import upgrade_head
from spinstats.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from spinstats.domain.ingestion import IngestionReconciler

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from spinstats.domain.model import ListeningRecord


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def store_records(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> Callable[..., None]:
    """Persist records straight through the store, committing once."""

    def _store(*records: ListeningRecord) -> None:
        with sqlite_unit_of_work() as uow:
            report = uow.repositories.listenings.upsert_batch(list(records))
            uow.commit()
        assert not report.failures

    return _store


@pytest.fixture
def reconciler(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> IngestionReconciler:
    return IngestionReconciler(sqlite_unit_of_work)
