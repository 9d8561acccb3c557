from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from spinstats.domain.aggregation.pipeline import (
    AggregationPipeline,
    Filter,
    GroupBy,
    Limit,
    Normalize,
    PipelineBuilder,
    Project,
    Sort,
)
from spinstats.domain.normalization import normalize, primary_artist
from tests.helpers.listenings import at, make_record

if TYPE_CHECKING:
    from spinstats.domain.aggregation.pipeline import Group, GroupKey
    from spinstats.domain.model import ListeningRecord


def _artist_key(record: ListeningRecord) -> GroupKey:
    return (normalize(primary_artist(record.artist)),)


def _artist_display(record: ListeningRecord) -> tuple[str, ...]:
    return (primary_artist(record.artist),)


def _summary(group: Group) -> tuple[str, int, int]:
    return (group.display[0], group.stream_count, group.listening_time_seconds)


def _artist_pipeline(*, limit: int | None = None) -> AggregationPipeline[tuple[str, int, int]]:
    builder = (
        PipelineBuilder()
        .normalize(key=_artist_key, display=_artist_display)
        .group(track_breakdown=True)
        .sort()
    )
    if limit is not None:
        builder = builder.limit(limit)
    return builder.project(_summary)


def test_groups_by_normalized_key_and_sums_durations() -> None:
    records = [
        make_record(artist="Daft Punk", duration_seconds=100, played_at=at(1, 1)),
        make_record(artist=" daft punk ", duration_seconds=200, played_at=at(1, 2)),
        make_record(artist="DAFT PUNK & Pharrell", duration_seconds=300, played_at=at(1, 3)),
        make_record(artist="Justice", duration_seconds=50, played_at=at(1, 4)),
    ]

    result = _artist_pipeline().run(records)

    assert result == [("Daft Punk", 3, 600), ("Justice", 1, 50)]


def test_display_is_first_encountered_value() -> None:
    records = [
        make_record(artist="daft punk", played_at=at(1, 1)),
        make_record(artist="Daft Punk", played_at=at(1, 2)),
    ]

    assert _artist_pipeline().run(records)[0][0] == "daft punk"


def test_ties_are_broken_by_normalized_key() -> None:
    records = [
        make_record(artist="Zedd"),
        make_record(artist="abba"),
        make_record(artist="Moby"),
        make_record(artist="Moby"),
    ]

    names = [name for name, _, _ in _artist_pipeline().run(records)]

    assert names == ["Moby", "abba", "Zedd"]


def test_limit_truncates_after_sorting() -> None:
    records = [make_record(artist="B"), make_record(artist="A"), make_record(artist="A")]

    assert _artist_pipeline(limit=1).run(records) == [("A", 2, 360)]


def test_filters_drop_records_before_grouping() -> None:
    pipeline = (
        PipelineBuilder()
        .filter(lambda record: record.duration_seconds > 60, name="long plays")
        .normalize(key=_artist_key, display=_artist_display)
        .group()
        .project(_summary)
    )

    result = pipeline.run(
        [
            make_record(artist="A", duration_seconds=30),
            make_record(artist="A", duration_seconds=120),
        ]
    )

    assert result == [("A", 1, 120)]


def test_track_breakdown_and_last_played() -> None:
    groups: list[Group] = []

    def keep(group: Group) -> Group:
        groups.append(group)
        return group

    pipeline = (
        PipelineBuilder()
        .normalize(key=_artist_key, display=_artist_display)
        .group(track_breakdown=True)
        .project(keep)
    )
    pipeline.run(
        [
            make_record("Intro", artist="A", played_at=at(2, 3), duration_seconds=10),
            make_record("Outro", artist="A", played_at=at(2, 5), duration_seconds=20),
            make_record("intro ", artist="A", played_at=at(2, 1), duration_seconds=10),
        ]
    )

    (group,) = groups
    assert group.last_played == at(2, 5)
    breakdown = group.breakdown()
    assert [(track.title, track.stream_count) for track in breakdown] == [
        ("Intro", 2),
        ("Outro", 1),
    ]
    assert breakdown[0].listening_time_seconds == 20


def test_pipeline_runs_over_empty_input() -> None:
    assert _artist_pipeline().run([]) == []


def test_stage_order_is_validated() -> None:
    normalize_stage = Normalize(key=_artist_key, display=_artist_display)
    with pytest.raises(ValueError, match="out of order"):
        AggregationPipeline(
            stages=(normalize_stage, GroupBy(), Limit(3), Sort(), Project(_summary))
        )
    with pytest.raises(ValueError, match="out of order"):
        AggregationPipeline(
            stages=(normalize_stage, Filter(lambda _: True), GroupBy(), Project(_summary))
        )


def test_required_stages_must_appear_once() -> None:
    normalize_stage = Normalize(key=_artist_key, display=_artist_display)
    with pytest.raises(ValueError, match="Project"):
        AggregationPipeline(stages=(normalize_stage, GroupBy()))
    with pytest.raises(ValueError, match="Normalize"):
        AggregationPipeline(
            stages=(normalize_stage, normalize_stage, GroupBy(), Project(_summary))
        )
    with pytest.raises(ValueError, match="Sort"):
        AggregationPipeline(
            stages=(normalize_stage, GroupBy(), Sort(), Sort(), Project(_summary))
        )


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError, match="positive"):
        Limit(0)
