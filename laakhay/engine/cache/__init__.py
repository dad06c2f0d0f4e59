"""Market-data and account caches.

Venues never own the caches: they write through the CacheFacade handed to
them at construction, and the caches refer to venues by name only.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .account import AccountCache
from .orderbook import BufferConfig, OrderbookCache, book_key
from .ticker import TickerCache, ticker_key


@dataclass
class CacheFacade:
    """The three process caches, passed to venues as one value."""

    tickers: TickerCache = field(default_factory=TickerCache)
    orderbooks: OrderbookCache = field(default_factory=OrderbookCache)
    accounts: AccountCache = field(default_factory=AccountCache)

    def clear_venue(self, venue: str) -> None:
        self.tickers.clear(venue)
        self.orderbooks.clear(venue)
        self.accounts.clear(venue)


__all__ = [
    "AccountCache",
    "BufferConfig",
    "CacheFacade",
    "OrderbookCache",
    "TickerCache",
    "book_key",
    "ticker_key",
]
