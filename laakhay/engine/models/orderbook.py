"""Order book model with absolute-amount level updates.

Asks are kept ascending and bids descending by price. Updates carry the new
absolute amount at a price: a zero amount removes the level, so applying the
same update twice leaves the book unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal

from ..core.enums import AssetClass
from .currency import Pair


@dataclass(frozen=True)
class Level:
    """One price level."""

    price: Decimal
    amount: Decimal
    order_count: int | None = None
    liquidation_orders: int | None = None


@dataclass
class OrderBook:
    """Mutable order book for one (venue, pair, asset)."""

    venue: str
    pair: Pair
    asset: AssetClass
    asks: list[Level] = field(default_factory=list)
    bids: list[Level] = field(default_factory=list)
    sequence: int | None = None
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        self.asks = _normalize(self.asks, descending=False)
        self.bids = _normalize(self.bids, descending=True)

    @property
    def key(self) -> tuple[str, Pair, AssetClass]:
        return (self.venue.lower(), self.pair, self.asset)

    @property
    def best_ask(self) -> Level | None:
        return self.asks[0] if self.asks else None

    @property
    def best_bid(self) -> Level | None:
        return self.bids[0] if self.bids else None

    def is_crossed(self) -> bool:
        """True when the best bid reaches or exceeds the best ask."""
        if not self.asks or not self.bids:
            return False
        return self.bids[0].price >= self.asks[0].price

    def is_monotonic(self) -> bool:
        asks_ok = all(a.price < b.price for a, b in zip(self.asks, self.asks[1:]))
        bids_ok = all(a.price > b.price for a, b in zip(self.bids, self.bids[1:]))
        return asks_ok and bids_ok

    def apply(self, asks: Iterable[Level] = (), bids: Iterable[Level] = ()) -> None:
        """Merge absolute-amount updates into both sides."""
        for level in asks:
            _merge(self.asks, level, descending=False)
        for level in bids:
            _merge(self.bids, level, descending=True)
        self.last_updated = datetime.now(UTC)

    def copy(self) -> "OrderBook":
        return replace(self, asks=list(self.asks), bids=list(self.bids))


@dataclass(frozen=True)
class OrderbookUpdate:
    """Snapshot or delta delivered by a stream."""

    venue: str
    pair: Pair
    asset: AssetClass
    asks: tuple[Level, ...] = ()
    bids: tuple[Level, ...] = ()
    sequence: int | None = None
    is_snapshot: bool = False
    timestamp: datetime | None = None

    @property
    def key(self) -> tuple[str, Pair, AssetClass]:
        return (self.venue.lower(), self.pair, self.asset)

    def to_book(self) -> OrderBook:
        return OrderBook(
            venue=self.venue,
            pair=self.pair,
            asset=self.asset,
            asks=list(self.asks),
            bids=list(self.bids),
            sequence=self.sequence,
            last_updated=self.timestamp or datetime.now(UTC),
        )


def _normalize(levels: Iterable[Level], *, descending: bool) -> list[Level]:
    # Later entries at the same price win; zero amounts are dropped.
    by_price: dict[Decimal, Level] = {}
    for level in levels:
        by_price[level.price] = level
    kept = [level for level in by_price.values() if level.amount != 0]
    kept.sort(key=lambda level: level.price, reverse=descending)
    return kept


def _locate(levels: list[Level], price: Decimal, *, descending: bool) -> int:
    lo, hi = 0, len(levels)
    while lo < hi:
        mid = (lo + hi) // 2
        current = levels[mid].price
        before = current > price if descending else current < price
        if before:
            lo = mid + 1
        else:
            hi = mid
    return lo


def _merge(levels: list[Level], update: Level, *, descending: bool) -> None:
    idx = _locate(levels, update.price, descending=descending)
    exists = idx < len(levels) and levels[idx].price == update.price
    if update.amount == 0:
        if exists:
            del levels[idx]
        return
    if exists:
        levels[idx] = update
    else:
        levels.insert(idx, update)
