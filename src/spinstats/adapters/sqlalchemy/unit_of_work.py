"""Process-wide SQLAlchemy engine and the unit of work built on it."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from spinstats.adapters.sqlalchemy.mappings import start_mappers
from spinstats.adapters.sqlalchemy.migrations import upgrade_head
from spinstats.adapters.sqlalchemy.repositories import SqlAlchemyListeningStore
from spinstats.config.storage import get_database_config
from spinstats.domain.errors import StorageUnavailableError
from spinstats.domain.ports.unit_of_work import ListeningRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from spinstats.config.limits import QueryConfig

log = getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter was used before ``startup()`` or a unit of work outside its block."""


class _Adapter:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    @classmethod
    def session(cls) -> Session:
        if cls.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not started; call "
                "spinstats.adapters.sqlalchemy.unit_of_work.startup() first"
            )
        return cls.sessions()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or a new one), map models and migrate to head."""

    if _Adapter.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already started; pass force=True to rebind")

    bound = engine
    if bound is None:
        database = get_database_config()
        bound = create_engine(database_uri or database.uri, echo=database.echo, future=True)
    start_mappers()
    upgrade_head(engine=bound)
    _Adapter.engine = bound
    _Adapter.sessions = sessionmaker(bind=bound, expire_on_commit=False)
    log.info("Listening store ready on %s", bound.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _Adapter.engine


def is_started() -> bool:
    return _Adapter.engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it; ``startup()`` may run again afterwards."""

    if _Adapter.engine is not None:
        _Adapter.engine.dispose()
    _Adapter.engine = None
    _Adapter.sessions = None


class SqlAlchemyUnitOfWork:
    """One session per ``with`` block; anything not committed is rolled back."""

    def __init__(self, *, query_config: QueryConfig | None = None) -> None:
        if not is_started():
            raise StartupError("SQLAlchemy adapter not started")
        self._query_config = query_config
        self._session: Session | None = None
        self._repositories: ListeningRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        self._session = _Adapter.session()
        store = SqlAlchemyListeningStore(self._session, query_config=self._query_config)
        self._repositories = ListeningRepositories(listenings=store)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session, self._session, self._repositories = self.session, None, None
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with block")
        return self._session

    @property
    def repositories(self) -> ListeningRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with block")
        return self._repositories

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            log.exception("Commit failed")
            raise StorageUnavailableError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from spinstats.domain.ports.unit_of_work import ListeningUnitOfWork

    _uow_check: ListeningUnitOfWork = SqlAlchemyUnitOfWork()
