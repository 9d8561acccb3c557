from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from spinstats.domain.errors import InvalidArgumentError, InvalidRangeError
from spinstats.domain.time_windows import UNBOUNDED, Clock, DateWindow, resolve_window


def _make_clock(reference: datetime) -> Clock:
    def _clock() -> datetime:
        return reference

    return _clock


def test_dates_cover_whole_utc_days() -> None:
    window = DateWindow(start=date(2023, 1, 1), end=date(2023, 12, 31))

    assert window.lower == datetime(2023, 1, 1, tzinfo=UTC)
    assert window.contains(datetime(2023, 1, 1, 0, 0, tzinfo=UTC))
    assert window.contains(datetime(2023, 12, 31, 23, 59, 59, tzinfo=UTC))
    assert not window.contains(datetime(2024, 1, 1, tzinfo=UTC))
    assert not window.contains(datetime(2022, 12, 31, 23, 59, 59, tzinfo=UTC))


def test_datetime_bounds_are_inclusive() -> None:
    start = datetime(2024, 5, 1, 10, tzinfo=UTC)
    end = datetime(2024, 5, 1, 11, tzinfo=UTC)
    window = DateWindow(start=start, end=end)

    assert window.contains(start)
    assert window.contains(end)
    assert not window.contains(end + timedelta(microseconds=1))


def test_absent_bounds_are_open() -> None:
    window = DateWindow(end=date(2020, 1, 1))

    assert window.contains(datetime(1970, 1, 1, tzinfo=UTC))
    assert not window.contains(datetime(2020, 1, 2, tzinfo=UTC))
    assert DateWindow(start=date(2020, 1, 1)).contains(datetime(2099, 1, 1, tzinfo=UTC))


def test_naive_datetimes_are_read_as_utc() -> None:
    window = DateWindow(start=datetime(2024, 1, 1, 12))

    assert window.lower == datetime(2024, 1, 1, 12, tzinfo=UTC)
    assert window.contains(datetime(2024, 1, 1, 12))


def test_inverted_window_is_rejected() -> None:
    with pytest.raises(InvalidRangeError) as exc:
        DateWindow(start=date(2024, 6, 1), end=date(2024, 1, 1))

    assert isinstance(exc.value, InvalidArgumentError)
    assert isinstance(exc.value, ValueError)


def test_single_day_window_is_valid() -> None:
    window = resolve_window(date(2024, 2, 29), date(2024, 2, 29))

    assert window.contains(datetime(2024, 2, 29, 18, tzinfo=UTC))


def test_resolve_window_without_bounds_is_unbounded() -> None:
    window = resolve_window()

    assert window is UNBOUNDED
    assert window.is_unbounded
    assert window.contains(datetime(1999, 1, 1, tzinfo=UTC))


def test_lookback_anchors_to_clock() -> None:
    now = datetime(2025, 1, 1, 12, tzinfo=UTC)

    window = DateWindow.lookback(timedelta(hours=6), clock=_make_clock(now))

    assert window.lower == datetime(2025, 1, 1, 6, tzinfo=UTC)
    assert window.upper == now


def test_lookback_rejects_negative_duration() -> None:
    with pytest.raises(InvalidRangeError):
        DateWindow.lookback(timedelta(seconds=-1))
