"""Unit tests for trade aggregation into candles."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from laakhay.engine.core.enums import AssetClass, Interval
from laakhay.engine.core.exceptions import DuplicateTradeError, ValidationError
from laakhay.engine.kline import aggregate_trades, dedupe_candles, sort_candles
from laakhay.engine.models.currency import new_pair
from laakhay.engine.models.kline import Candle, Trade

BTC_USD = new_pair("BTC", "USD")
T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _trade(minute: float, price: str, amount: str = "1", trade_id: str = "") -> Trade:
    return Trade(
        trade_id=trade_id,
        price=Decimal(price),
        amount=Decimal(amount),
        timestamp=T0 + timedelta(minutes=minute),
    )


def _aggregate(trades, interval=Interval.M1):
    return aggregate_trades(trades, interval, BTC_USD, AssetClass.SPOT, "fakex")


def test_gap_is_filled_with_flat_candles():
    """Trades at minute 0 and 3 produce four contiguous candles."""
    series = _aggregate([_trade(0.1, "100"), _trade(3.2, "110", "2")])

    assert len(series) == 4
    assert series.is_contiguous()
    assert [c.time for c in series.candles] == [T0 + timedelta(minutes=m) for m in range(4)]
    for filler in series.candles[1:3]:
        assert filler.open == filler.high == filler.low == filler.close == Decimal("100")
        assert filler.volume == 0
    assert series.candles[3].close == Decimal("110")
    assert series.candles[3].volume == Decimal("2")


def test_bucket_ohlcv():
    series = _aggregate(
        [
            _trade(0.9, "101"),
            _trade(0.1, "100"),
            _trade(0.5, "105", "2"),
            _trade(0.7, "99"),
        ]
    )
    (candle,) = series.candles
    assert candle.open == Decimal("100")
    assert candle.high == Decimal("105")
    assert candle.low == Decimal("99")
    assert candle.close == Decimal("101")
    assert candle.volume == Decimal("5")


def test_candles_align_to_interval_boundaries():
    series = _aggregate([_trade(7, "100"), _trade(22, "101")], Interval.M15)
    assert [c.time for c in series.candles] == [T0, T0 + timedelta(minutes=15)]


@pytest.mark.parametrize(
    "trade",
    [
        Trade(price=Decimal("0"), amount=Decimal("1"), timestamp=T0),
        Trade(price=Decimal("1"), amount=Decimal("-1"), timestamp=T0),
        Trade(price=Decimal("1"), amount=Decimal("1")),
        Trade(price=Decimal("1"), amount=Decimal("1"), timestamp=datetime(1970, 1, 1, tzinfo=UTC)),
    ],
)
def test_invalid_trades_rejected(trade):
    with pytest.raises(ValidationError):
        _aggregate([trade])


def test_empty_input_rejected():
    with pytest.raises(ValidationError, match="no trades"):
        _aggregate([])


def test_duplicate_trade_id_rejected():
    with pytest.raises(DuplicateTradeError) as exc_info:
        _aggregate([_trade(0, "100", trade_id="t1"), _trade(1, "101", trade_id="t1")])
    assert exc_info.value.trade_id == "t1"


def test_sort_and_dedupe():
    def candle(minute, close):
        return Candle(
            time=T0 + timedelta(minutes=minute),
            open=Decimal(close),
            high=Decimal(close),
            low=Decimal(close),
            close=Decimal(close),
            volume=Decimal(1),
        )

    candles = [candle(2, "3"), candle(0, "1"), candle(2, "4")]
    deduped = dedupe_candles(candles)
    assert len(deduped) == 2
    ordered = sort_candles(deduped)
    assert [c.close for c in ordered] == [Decimal("1"), Decimal("4")]
    assert sort_candles(deduped, descending=True)[0].close == Decimal("4")


def test_candle_range_is_checked():
    with pytest.raises(ValueError):
        Candle(time=T0, open=Decimal(5), high=Decimal(4), low=Decimal(1), close=Decimal(2), volume=Decimal(0))
