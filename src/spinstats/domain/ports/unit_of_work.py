"""Transaction boundary around the listening store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self

if TYPE_CHECKING:
    from types import TracebackType

    from spinstats.domain.ports.persistence import ListeningStore


@dataclass(slots=True)
class ListeningRepositories:
    listenings: ListeningStore


class ListeningUnitOfWork(Protocol):
    """Used as a context manager; writes persist only after ``commit()``.

    Leaving the block on an exception rolls back whatever was not committed.
    """

    @property
    def repositories(self) -> ListeningRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
