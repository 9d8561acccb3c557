"""Typed aggregation pipeline over listening records.

A pipeline is an ordered sequence of stage descriptors::

    Filter* -> Normalize -> GroupBy -> Sort? -> Limit? -> Project

Stages are plain frozen dataclasses, so ranking and grouping logic runs over any
iterable of records and can be tested without a database. Stores contribute
stages of their own (for instance ``ListeningStore.filter_by_date``) and may
push the same constraints down into their queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

from spinstats.domain.model import TrackBreakdown
from spinstats.domain.normalization import normalize

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from spinstats.domain.model import ListeningRecord

type GroupKey = tuple[str, ...]
type Predicate = Callable[[ListeningRecord], bool]


@dataclass(frozen=True, slots=True)
class Filter:
    """Keep records for which ``predicate`` holds."""

    predicate: Predicate
    name: str = "filter"


@dataclass(frozen=True, slots=True)
class Normalize:
    """Derive the grouping key and the display values of a record.

    ``display`` is only evaluated for the first record of each group.
    """

    key: Callable[[ListeningRecord], GroupKey]
    display: Callable[[ListeningRecord], tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class GroupBy:
    """Accumulate play counts and durations per key, optionally per track as well."""

    track_breakdown: bool = False


@dataclass(frozen=True, slots=True)
class Sort:
    """Order groups by play count descending, ties by group key ascending."""


@dataclass(frozen=True, slots=True)
class Limit:
    count: int

    def __post_init__(self) -> None:
        if self.count <= 0:
            raise ValueError("Limit must be positive")


@dataclass(frozen=True, slots=True)
class Project[T]:
    """Turn an accumulated group into the result type."""

    build: Callable[[Group], T]


type Stage = Filter | Normalize | GroupBy | Sort | Limit | Project[Any]

_STAGE_ORDER: dict[type[Any], int] = {
    Filter: 0,
    Normalize: 1,
    GroupBy: 2,
    Sort: 3,
    Limit: 4,
    Project: 5,
}
_REQUIRED_ONCE = (Normalize, GroupBy, Project)
_OPTIONAL_ONCE = (Sort, Limit)


@dataclass(slots=True)
class TrackTally:
    title: str
    stream_count: int = 0
    listening_time_seconds: int = 0


@dataclass(slots=True)
class Group:
    """Running totals for one grouping key."""

    key: GroupKey
    display: tuple[str, ...]
    stream_count: int = 0
    listening_time_seconds: int = 0
    last_played: datetime | None = None
    track_tallies: dict[str, TrackTally] | None = None

    def add(self, record: ListeningRecord) -> None:
        duration = record.duration_seconds or 0
        self.stream_count += 1
        self.listening_time_seconds += duration
        if self.last_played is None or record.played_at > self.last_played:
            self.last_played = record.played_at
        if self.track_tallies is None:
            return
        track_key = normalize(record.track)
        tally = self.track_tallies.get(track_key)
        if tally is None:
            tally = self.track_tallies[track_key] = TrackTally(title=record.track.strip())
        tally.stream_count += 1
        tally.listening_time_seconds += duration

    def breakdown(self) -> tuple[TrackBreakdown, ...]:
        """Per-track totals, most played first (ties by normalized title)."""

        if not self.track_tallies:
            return ()
        ordered = sorted(
            self.track_tallies.items(),
            key=lambda item: (-item[1].stream_count, item[0]),
        )
        return tuple(
            TrackBreakdown(
                title=tally.title,
                stream_count=tally.stream_count,
                listening_time_seconds=tally.listening_time_seconds,
            )
            for _, tally in ordered
        )


def _validate(stages: tuple[Stage, ...]) -> None:
    last_rank = -1
    for stage in stages:
        rank = _STAGE_ORDER.get(type(stage))
        if rank is None:
            raise TypeError(f"Unsupported pipeline stage: {stage!r}")
        if rank < last_rank:
            raise ValueError(f"{type(stage).__name__} stage is out of order")
        last_rank = rank
    for stage_type in _REQUIRED_ONCE:
        count = sum(1 for stage in stages if isinstance(stage, stage_type))
        if count != 1:
            raise ValueError(f"Pipeline needs exactly one {stage_type.__name__} stage")
    for stage_type in _OPTIONAL_ONCE:
        if sum(1 for stage in stages if isinstance(stage, stage_type)) > 1:
            raise ValueError(f"Pipeline allows at most one {stage_type.__name__} stage")


def _single[S](stages: tuple[Stage, ...], stage_type: type[S]) -> S | None:
    for stage in stages:
        if isinstance(stage, stage_type):
            return stage
    return None


@dataclass(frozen=True, slots=True)
class AggregationPipeline[T]:
    stages: tuple[Stage, ...]

    def __post_init__(self) -> None:
        _validate(self.stages)

    def run(self, records: Iterable[ListeningRecord]) -> list[T]:
        predicates = [stage.predicate for stage in self.stages if isinstance(stage, Filter)]
        normalize_stage = _single(self.stages, Normalize)
        group_stage = _single(self.stages, GroupBy)
        project_stage = _single(self.stages, Project)
        if normalize_stage is None or group_stage is None or project_stage is None:
            raise ValueError("Incomplete pipeline")

        groups: dict[GroupKey, Group] = {}
        for record in records:
            if not all(predicate(record) for predicate in predicates):
                continue
            key = normalize_stage.key(record)
            group = groups.get(key)
            if group is None:
                group = groups[key] = Group(
                    key=key,
                    display=normalize_stage.display(record),
                    track_tallies={} if group_stage.track_breakdown else None,
                )
            group.add(record)

        rows = list(groups.values())
        if _single(self.stages, Sort) is not None:
            rows.sort(key=lambda group: (-group.stream_count, group.key))
        limit_stage = _single(self.stages, Limit)
        if limit_stage is not None:
            rows = rows[: limit_stage.count]
        return [project_stage.build(group) for group in rows]


@dataclass(slots=True)
class PipelineBuilder:
    """Fluent helper composing stages in the required order."""

    _stages: list[Stage] = field(default_factory=list[Stage])

    def filter(self, predicate: Filter | Predicate, *, name: str = "filter") -> Self:
        stage = predicate if isinstance(predicate, Filter) else Filter(predicate, name=name)
        self._stages.append(stage)
        return self

    def normalize(
        self,
        *,
        key: Callable[[ListeningRecord], GroupKey],
        display: Callable[[ListeningRecord], tuple[str, ...]],
    ) -> Self:
        self._stages.append(Normalize(key=key, display=display))
        return self

    def group(self, *, track_breakdown: bool = False) -> Self:
        self._stages.append(GroupBy(track_breakdown=track_breakdown))
        return self

    def sort(self) -> Self:
        self._stages.append(Sort())
        return self

    def limit(self, count: int) -> Self:
        self._stages.append(Limit(count))
        return self

    def project[T](self, build: Callable[[Group], T]) -> AggregationPipeline[T]:
        return AggregationPipeline(stages=(*self._stages, Project(build)))


__all__ = [
    "AggregationPipeline",
    "Filter",
    "Group",
    "GroupBy",
    "GroupKey",
    "Limit",
    "Normalize",
    "PipelineBuilder",
    "Predicate",
    "Project",
    "Sort",
    "Stage",
    "TrackTally",
]
