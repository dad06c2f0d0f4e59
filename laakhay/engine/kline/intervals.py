"""Interval formatting and span maths."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime

from ..core.enums import Interval
from ..core.exceptions import UnsupportedError, ValidationError
from ..models.kline import DateRange

IntervalRule = Mapping[Interval, str] | Callable[[Interval], str | None]


def short_form(interval: Interval) -> str:
    """Canonical short form, e.g. ``1h``."""
    return interval.value


def seconds_form(interval: Interval) -> str:
    """Duration in seconds, e.g. ``3600``."""
    return str(interval.seconds)


def minutes_form(interval: Interval) -> str | None:
    """Duration in minutes; sub-minute intervals have no representation."""
    if interval.seconds < 60:
        return None
    return str(interval.seconds // 60)


def format_interval(interval: Interval, rule: IntervalRule = short_form) -> str:
    """Render ``interval`` the way a venue expects it over the wire.

    Raises:
        UnsupportedError: If the rule has no representation for the interval
    """
    if callable(rule):
        value = rule(interval)
    else:
        value = rule.get(interval)
    if not value:
        raise UnsupportedError(
            f"{interval.word} interval unsupported by exchange", capability=interval
        )
    return value


def candles_per_span(start: datetime, end: datetime, interval: Interval) -> int:
    """Number of whole intervals in [start, end); never negative."""
    span = (_utc(end) - _utc(start)).total_seconds()
    if span <= 0:
        return 0
    return int(span // interval.seconds)


def split_date_range(
    start: datetime, end: datetime, interval: Interval, limit: int
) -> list[DateRange]:
    """Slice [start, end) into ranges of at most ``limit`` intervals.

    The first range begins at ``start``; the last one is clipped to ``end``.
    A span shorter than one request yields a single range.

    Raises:
        ValidationError: If ``end`` precedes ``start`` or ``limit`` < 1
    """
    if limit < 1:
        raise ValidationError(f"range limit must be at least 1, got {limit}")
    if end < start:
        raise ValidationError(f"range end {end.isoformat()} precedes start {start.isoformat()}")

    step = interval.duration * limit
    if end - start <= step:
        return [DateRange(start, end)]

    ranges: list[DateRange] = []
    cursor = start
    while cursor < end:
        upper = min(cursor + step, end)
        ranges.append(DateRange(cursor, upper))
        cursor = upper
    return ranges


def align(ts: datetime, interval: Interval) -> datetime:
    """Floor ``ts`` to the interval boundary counted from the Unix epoch."""
    seconds = int(_utc(ts).timestamp())
    return datetime.fromtimestamp(seconds - seconds % interval.seconds, tz=UTC)


def _utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)
