"""Trade, candle and kline series models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.enums import AssetClass, Interval, OrderSide
from .currency import Pair


class Trade(BaseModel):
    """Public market trade.

    Prices and amounts are not constrained here: aggregation validates them
    and reports the offending trade.
    """

    trade_id: str = ""
    venue: str = ""
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide = OrderSide.UNKNOWN
    price: Decimal
    amount: Decimal
    timestamp: datetime | None = None

    model_config = ConfigDict(frozen=True)


class Candle(BaseModel):
    """OHLCV candle keyed by its open time."""

    time: datetime
    open: Decimal = Field(..., ge=0)
    high: Decimal = Field(..., ge=0)
    low: Decimal = Field(..., ge=0)
    close: Decimal = Field(..., ge=0)
    volume: Decimal = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_range(self) -> "Candle":
        if self.low > self.high:
            raise ValueError("low must be <= high")
        for name in ("open", "close"):
            value = getattr(self, name)
            if not self.low <= value <= self.high:
                raise ValueError(f"{name} must be within [low, high]")
        return self


class KlineSeries(BaseModel):
    """Candles of one (venue, pair, asset, interval)."""

    venue: str
    pair: Pair
    asset: AssetClass
    interval: Interval
    candles: list[Candle] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.candles)

    def sorted(self, *, descending: bool = False) -> "KlineSeries":
        ordered = sorted(self.candles, key=lambda c: c.time, reverse=descending)
        return self.model_copy(update={"candles": ordered})

    def is_contiguous(self) -> bool:
        """Consecutive candles are exactly one interval apart after an ascending sort."""
        ordered = sorted(self.candles, key=lambda c: c.time)
        step = self.interval.duration
        return all(b.time - a.time == step for a, b in zip(ordered, ordered[1:]))


@dataclass(frozen=True)
class DateRange:
    """Half-open [start, end) range."""

    start: datetime
    end: datetime

    @property
    def span(self):
        return self.end - self.start
