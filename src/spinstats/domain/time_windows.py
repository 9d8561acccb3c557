"""Inclusive date windows used to constrain aggregation queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

from spinstats.domain.errors import InvalidRangeError

type Bound = date | datetime


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _lower_bound(value: Bound | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.min, tzinfo=UTC)


def _upper_bound(value: Bound | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.max, tzinfo=UTC)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive ``[start, end]`` window; either side may stay open.

    Plain dates cover the whole UTC day, so ``end=date(2023, 12, 31)`` keeps plays
    from the evening of the 31st. Naive datetimes are read as UTC.
    """

    start: Bound | None = None
    end: Bound | None = None
    lower: datetime | None = field(init=False, repr=False, compare=False)
    upper: datetime | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lower = _lower_bound(self.start)
        upper = _upper_bound(self.end)
        if lower is not None and upper is not None and lower > upper:
            raise InvalidRangeError(
                f"Window start {self.start} must not be after window end {self.end}"
            )
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    @classmethod
    def lookback(cls, duration: timedelta, *, clock: Clock = _utcnow) -> DateWindow:
        """Window covering ``duration`` up to now."""

        if duration < timedelta(0):
            raise InvalidRangeError("Lookback duration must be non-negative")
        anchor = _as_utc(clock())
        return cls(start=anchor - duration, end=anchor)

    @property
    def is_unbounded(self) -> bool:
        return self.lower is None and self.upper is None

    def contains(self, moment: datetime) -> bool:
        moment = _as_utc(moment)
        if self.lower is not None and moment < self.lower:
            return False
        return not (self.upper is not None and moment > self.upper)


UNBOUNDED = DateWindow()


def resolve_window(start: Bound | None = None, end: Bound | None = None) -> DateWindow:
    """Build a window from optional bounds, raising ``InvalidRangeError`` when inverted."""

    if start is None and end is None:
        return UNBOUNDED
    return DateWindow(start=start, end=end)


__all__ = ["UNBOUNDED", "Bound", "Clock", "DateWindow", "resolve_window"]
