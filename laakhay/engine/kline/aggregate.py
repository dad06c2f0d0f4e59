"""Candle construction from trades and candle ordering."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal

from ..core.enums import AssetClass, Interval
from ..core.exceptions import DuplicateTradeError, ValidationError
from ..models.currency import Pair
from ..models.kline import Candle, KlineSeries, Trade
from .intervals import align

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def validate_trades(trades: list[Trade]) -> None:
    """Reject empty input, non-positive prices or amounts, zero timestamps and duplicate ids."""
    if not trades:
        raise ValidationError("no trades supplied")
    seen: set[str] = set()
    for trade in trades:
        if trade.timestamp is None or _utc(trade.timestamp) == _EPOCH:
            raise ValidationError(f"trade {trade.trade_id or '?'} has no timestamp")
        if trade.price <= 0:
            raise ValidationError(f"trade {trade.trade_id or '?'} has invalid price {trade.price}")
        if trade.amount <= 0:
            raise ValidationError(
                f"trade {trade.trade_id or '?'} has invalid amount {trade.amount}"
            )
        if trade.trade_id:
            if trade.trade_id in seen:
                raise DuplicateTradeError(trade.trade_id)
            seen.add(trade.trade_id)


def aggregate_trades(
    trades: Iterable[Trade],
    interval: Interval,
    pair: Pair,
    asset: AssetClass,
    venue: str,
) -> KlineSeries:
    """Build a contiguous candle series from trades.

    Trades are sorted by time and bucketed on epoch-aligned interval
    boundaries. Buckets without trades between the first and last trade are
    filled with a flat candle at the previous close and zero volume.
    """
    trades = list(trades)
    validate_trades(trades)
    ordered = sorted(trades, key=lambda t: _utc(t.timestamp))

    buckets: dict[datetime, list[Trade]] = {}
    for trade in ordered:
        buckets.setdefault(align(trade.timestamp, interval), []).append(trade)

    candles: list[Candle] = []
    step = interval.duration
    previous: Candle | None = None
    for bucket_start in sorted(buckets):
        if previous is not None:
            gap = previous.time + step
            while gap < bucket_start:
                previous = Candle(
                    time=gap,
                    open=previous.close,
                    high=previous.close,
                    low=previous.close,
                    close=previous.close,
                    volume=Decimal(0),
                )
                candles.append(previous)
                gap += step
        bucket = buckets[bucket_start]
        prices = [t.price for t in bucket]
        previous = Candle(
            time=bucket_start,
            open=bucket[0].price,
            high=max(prices),
            low=min(prices),
            close=bucket[-1].price,
            volume=sum((t.amount for t in bucket), Decimal(0)),
        )
        candles.append(previous)

    logger.debug(
        "Aggregated trades",
        extra={"venue": venue, "pair": str(pair), "trades": len(trades), "candles": len(candles)},
    )
    return KlineSeries(venue=venue, pair=pair, asset=asset, interval=interval, candles=candles)


def sort_candles(candles: Iterable[Candle], *, descending: bool = False) -> list[Candle]:
    """Stable sort by open time."""
    return sorted(candles, key=lambda c: c.time, reverse=descending)


def dedupe_candles(candles: Iterable[Candle]) -> list[Candle]:
    """Keep the last candle seen for each open time."""
    by_time: dict[datetime, Candle] = {}
    for candle in candles:
        by_time[candle.time] = candle
    return list(by_time.values())


def _utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)
