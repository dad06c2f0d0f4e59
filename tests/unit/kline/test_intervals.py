"""Unit tests for interval formatting and range planning."""

from datetime import UTC, datetime, timedelta

import pytest

from laakhay.engine.core.enums import Interval
from laakhay.engine.core.exceptions import UnsupportedError, ValidationError
from laakhay.engine.kline import (
    align,
    candles_per_span,
    format_interval,
    minutes_form,
    seconds_form,
    split_date_range,
)

START = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    ("rule", "expected"),
    [
        (None, "1h"),
        (seconds_form, "3600"),
        (minutes_form, "60"),
        ({Interval.H1: "60min"}, "60min"),
    ],
)
def test_format_interval_rules(rule, expected):
    if rule is None:
        assert format_interval(Interval.H1) == expected
    else:
        assert format_interval(Interval.H1, rule) == expected


def test_format_interval_unsupported():
    with pytest.raises(UnsupportedError, match="fifteensecond interval unsupported by exchange"):
        format_interval(Interval.S15, minutes_form)
    with pytest.raises(UnsupportedError, match="oneday"):
        format_interval(Interval.D1, {Interval.H1: "60"})


def test_candles_per_span():
    assert candles_per_span(START, START + timedelta(hours=5), Interval.H1) == 5
    assert candles_per_span(START, START + timedelta(minutes=90), Interval.H1) == 1
    assert candles_per_span(START, START, Interval.M1) == 0
    assert candles_per_span(START + timedelta(hours=1), START, Interval.M1) == 0


def test_split_short_span_yields_single_range():
    ranges = split_date_range(START, START + timedelta(minutes=30), Interval.M1, 100)
    assert len(ranges) == 1
    assert ranges[0].start == START
    assert ranges[0].end == START + timedelta(minutes=30)


def test_split_covers_range_without_overlap():
    end = START + timedelta(minutes=250)
    ranges = split_date_range(START, end, Interval.M1, 100)

    assert [r.span for r in ranges] == [
        timedelta(minutes=100),
        timedelta(minutes=100),
        timedelta(minutes=50),
    ]
    assert ranges[0].start == START
    assert ranges[-1].end == end
    for first, second in zip(ranges, ranges[1:]):
        assert first.end == second.start


def test_split_rejects_bad_input():
    with pytest.raises(ValidationError):
        split_date_range(START, START - timedelta(seconds=1), Interval.M1, 10)
    with pytest.raises(ValidationError):
        split_date_range(START, START + timedelta(hours=1), Interval.M1, 0)


def test_align_floors_to_epoch_boundary():
    ts = datetime(2024, 1, 1, 10, 37, 12, tzinfo=UTC)
    assert align(ts, Interval.H1) == datetime(2024, 1, 1, 10, tzinfo=UTC)
    assert align(ts, Interval.M15) == datetime(2024, 1, 1, 10, 30, tzinfo=UTC)


def test_interval_lookups():
    assert Interval.from_seconds(3600) is Interval.H1
    assert Interval.from_seconds(7) is None
    assert Interval.from_str("1M") is Interval.MO1
    assert Interval.from_str("nope") is None
