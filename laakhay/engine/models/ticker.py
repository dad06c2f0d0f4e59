"""Ticker snapshot model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import AssetClass
from .currency import Pair


class Ticker(BaseModel):
    """Latest aggregate market statistics for one (venue, pair, asset)."""

    venue: str = Field(..., min_length=1)
    pair: Pair
    asset: AssetClass
    last: Decimal = Decimal(0)
    bid: Decimal = Decimal(0)
    ask: Decimal = Decimal(0)
    high: Decimal = Decimal(0)
    low: Decimal = Decimal(0)
    open: Decimal = Decimal(0)
    close: Decimal = Decimal(0)
    volume: Decimal = Decimal(0)
    quote_volume: Decimal = Decimal(0)
    last_updated: datetime | None = None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @property
    def spread(self) -> Decimal:
        return self.ask - self.bid if self.ask and self.bid else Decimal(0)
