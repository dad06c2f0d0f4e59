"""Kline engine: interval formatting, span maths, range splitting and trade aggregation."""

from .aggregate import aggregate_trades, dedupe_candles, sort_candles, validate_trades
from .intervals import (
    align,
    candles_per_span,
    format_interval,
    minutes_form,
    seconds_form,
    short_form,
    split_date_range,
)

__all__ = [
    "aggregate_trades",
    "align",
    "candles_per_span",
    "dedupe_candles",
    "format_interval",
    "minutes_form",
    "seconds_form",
    "short_form",
    "sort_candles",
    "split_date_range",
    "validate_trades",
]
