"""Ticker cache keyed by (venue, base, quote, asset)."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from ..core.enums import AssetClass
from ..core.exceptions import NotFoundError, ValidationError
from ..models.currency import Pair
from ..models.ticker import Ticker

logger = logging.getLogger(__name__)

TickerKey = tuple[str, str, str, AssetClass]


def ticker_key(venue: str, pair: Pair, asset: AssetClass) -> TickerKey:
    return (venue.lower(), pair.base, pair.quote, asset)


class TickerCache:
    """Last-writer-wins store of ticker snapshots.

    Snapshots are immutable, so readers never observe a partial write.
    """

    def __init__(self) -> None:
        self._tickers: dict[TickerKey, Ticker] = {}
        self._lock = threading.Lock()

    def process(self, ticker: Ticker) -> Ticker:
        """Validate and store a snapshot, returning the stored value.

        A missing or future ``last_updated`` is replaced with the current time.

        Raises:
            ValidationError: If venue, pair or asset is not set
        """
        if not ticker.venue:
            raise ValidationError("ticker venue name not set")
        if ticker.pair is None:
            raise ValidationError(f"{ticker.venue} ticker currency pair not populated")
        if ticker.asset is None:
            raise ValidationError(f"{ticker.venue} ticker asset type not set")

        now = datetime.now(UTC)
        if ticker.last_updated is None or _aware(ticker.last_updated) > now:
            ticker = ticker.model_copy(update={"last_updated": now})

        with self._lock:
            self._tickers[ticker_key(ticker.venue, ticker.pair, ticker.asset)] = ticker
        return ticker

    def get(self, venue: str, pair: Pair, asset: AssetClass) -> Ticker:
        """Return the cached snapshot.

        Raises:
            NotFoundError: If nothing is cached for the key
        """
        with self._lock:
            ticker = self._tickers.get(ticker_key(venue, pair, asset))
        if ticker is None:
            raise NotFoundError(f"no ticker for {venue} {pair} {asset}")
        return ticker

    def venue_tickers(self, venue: str) -> list[Ticker]:
        wanted = venue.lower()
        with self._lock:
            return [t for key, t in self._tickers.items() if key[0] == wanted]

    def clear(self, venue: str | None = None) -> None:
        with self._lock:
            if venue is None:
                self._tickers.clear()
                return
            wanted = venue.lower()
            for key in [key for key in self._tickers if key[0] == wanted]:
                del self._tickers[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tickers)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
