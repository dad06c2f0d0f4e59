"""Order book snapshot store and streaming update buffer.

Architecture:
    Each (venue, pair, asset) key owns a state record guarded by its own lock:
    the current book, a bounded FIFO of pending deltas, and Degraded /
    snapshot-in-flight flags. Snapshots replace the book atomically and
    discard deltas that pre-date them. Deltas are buffered and drained either
    on every delta or at most every ``flush_interval`` seconds.

Design Decisions:
    - Sequence ordering: with ``sort_buffer`` pending deltas are applied by
      sequence number, otherwise in arrival order; deltas at or below the
      book's sequence are discarded as stale
    - Integrity: a crossed or non-monotonic book after a drain marks the key
      Degraded and requests a fresh snapshot
    - Overflow: the oldest delta is dropped; when no snapshot is in flight the
      key goes Degraded and a resync is requested
    - Resync callbacks run after the key lock is released

See Also:
    - stream.router: Feeds snapshots and deltas from websocket frames
    - core.base.VenueBase.update_orderbook: REST snapshot path
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from ..core.enums import AssetClass
from ..core.exceptions import NotFoundError, ValidationError
from ..models.currency import Pair
from ..models.orderbook import OrderBook, OrderbookUpdate

logger = logging.getLogger(__name__)

BookKey = tuple[str, Pair, AssetClass]
ResyncHandler = Callable[[str, Pair, AssetClass], None]


def book_key(venue: str, pair: Pair, asset: AssetClass) -> BookKey:
    return (venue.lower(), pair, asset)


@dataclass
class BufferConfig:
    """Update buffer settings of one venue."""

    capacity: int = 5
    sort_buffer: bool = False
    flush_interval: float | None = None


@dataclass
class _BookState:
    venue: str
    book: OrderBook | None = None
    pending: deque[OrderbookUpdate] = field(default_factory=deque)
    degraded: bool = False
    snapshot_in_flight: bool = False
    last_flush: float = 0.0
    dropped: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)


class OrderbookCache:
    """Process-wide order book store."""

    def __init__(self, resync_handler: ResyncHandler | None = None) -> None:
        self._states: dict[BookKey, _BookState] = {}
        self._configs: dict[str, BufferConfig] = {}
        self._lock = threading.Lock()
        self.resync_handler = resync_handler

    def configure(self, venue: str, config: BufferConfig) -> None:
        with self._lock:
            self._configs[venue.lower()] = config

    def buffer_config(self, venue: str) -> BufferConfig:
        with self._lock:
            return self._configs.get(venue.lower()) or BufferConfig()

    # Snapshot store

    def process(self, book: OrderBook) -> OrderBook:
        """Replace the stored book with a full snapshot.

        Pending deltas at or below the snapshot's sequence are discarded and
        the rest are applied on top of it.

        Raises:
            ValidationError: If the snapshot is incomplete or crossed
        """
        if not book.venue:
            raise ValidationError("orderbook venue name not set")
        if book.pair is None:
            raise ValidationError(f"{book.venue} orderbook currency pair not populated")
        if book.is_crossed():
            raise ValidationError(
                f"{book.venue} {book.pair} {book.asset} orderbook is crossed"
            )

        state = self._state(book.venue, book.pair, book.asset)
        resync = False
        with state.lock:
            state.book = book.copy()
            state.degraded = False
            state.snapshot_in_flight = False
            state.last_flush = time.monotonic()
            if book.sequence is None:
                state.pending.clear()
            else:
                state.pending = deque(
                    u for u in state.pending if u.sequence is None or u.sequence > book.sequence
                )
            if state.pending:
                resync = self._drain_locked(state)
            snapshot = state.book.copy()
        if resync:
            self._request_resync(book.venue, book.pair, book.asset)
        return snapshot

    def get(self, venue: str, pair: Pair, asset: AssetClass) -> OrderBook:
        """Return a copy of the stored book.

        Raises:
            NotFoundError: If no snapshot has been stored for the key
        """
        with self._lock:
            state = self._states.get(book_key(venue, pair, asset))
        if state is None:
            raise NotFoundError(f"no orderbook for {venue} {pair} {asset}")
        with state.lock:
            if state.book is None:
                raise NotFoundError(f"no orderbook for {venue} {pair} {asset}")
            return state.book.copy()

    def is_degraded(self, venue: str, pair: Pair, asset: AssetClass) -> bool:
        with self._lock:
            state = self._states.get(book_key(venue, pair, asset))
        if state is None:
            return False
        with state.lock:
            return state.degraded

    def pending_count(self, venue: str, pair: Pair, asset: AssetClass) -> int:
        with self._lock:
            state = self._states.get(book_key(venue, pair, asset))
        if state is None:
            return 0
        with state.lock:
            return len(state.pending)

    def dropped_count(self, venue: str, pair: Pair, asset: AssetClass) -> int:
        with self._lock:
            state = self._states.get(book_key(venue, pair, asset))
        if state is None:
            return 0
        with state.lock:
            return state.dropped

    # Streaming updates

    def apply_update(self, update: OrderbookUpdate) -> None:
        """Entry point for stream frames: snapshots replace, deltas are buffered."""
        if update.is_snapshot:
            self.process(update.to_book())
            return

        config = self.buffer_config(update.venue)
        state = self._state(update.venue, update.pair, update.asset)
        resync = False
        with state.lock:
            if len(state.pending) >= max(config.capacity, 1):
                state.pending.popleft()
                state.dropped += 1
                if not state.snapshot_in_flight:
                    resync = self._degrade_locked(state, update, "buffer_overflow")
            state.pending.append(update)

            if state.book is not None and not state.snapshot_in_flight:
                now = time.monotonic()
                due = (
                    config.flush_interval is None
                    or now - state.last_flush >= config.flush_interval
                    or len(state.pending) >= config.capacity
                )
                if due:
                    resync = self._drain_locked(state, config) or resync
        if resync:
            self._request_resync(update.venue, update.pair, update.asset)

    def flush(self, venue: str, pair: Pair, asset: AssetClass) -> None:
        """Drain pending deltas now, regardless of the flush interval."""
        state = self._state(venue, pair, asset)
        with state.lock:
            resync = False
            if state.book is not None and not state.snapshot_in_flight:
                resync = self._drain_locked(state)
        if resync:
            self._request_resync(venue, pair, asset)

    def mark_degraded(self, venue: str, pair: Pair, asset: AssetClass, reason: str) -> None:
        state = self._state(venue, pair, asset)
        with state.lock:
            resync = self._degrade_locked(state, None, reason)
        if resync:
            self._request_resync(venue, pair, asset)

    def clear(self, venue: str | None = None) -> None:
        with self._lock:
            if venue is None:
                self._states.clear()
                return
            wanted = venue.lower()
            for key in [key for key in self._states if key[0] == wanted]:
                del self._states[key]

    # Internals

    def _state(self, venue: str, pair: Pair, asset: AssetClass) -> _BookState:
        key = book_key(venue, pair, asset)
        with self._lock:
            state = self._states.get(key)
            if state is None:
                state = _BookState(venue=venue)
                self._states[key] = state
            return state

    def _drain_locked(self, state: _BookState, config: BufferConfig | None = None) -> bool:
        """Apply pending deltas; returns True when a resync is needed."""
        config = config or self.buffer_config(state.venue)
        book = state.book
        assert book is not None
        updates = list(state.pending)
        state.pending.clear()
        if config.sort_buffer:
            updates.sort(key=lambda u: -1 if u.sequence is None else u.sequence)

        for update in updates:
            if (
                update.sequence is not None
                and book.sequence is not None
                and update.sequence <= book.sequence
            ):
                continue
            book.apply(update.asks, update.bids)
            if update.sequence is not None:
                book.sequence = update.sequence
            if update.timestamp is not None:
                book.last_updated = update.timestamp
        state.last_flush = time.monotonic()

        if book.is_crossed() or not book.is_monotonic():
            return self._degrade_locked(state, None, "crossed_book")
        return False

    def _degrade_locked(
        self, state: _BookState, update: OrderbookUpdate | None, reason: str
    ) -> bool:
        already = state.snapshot_in_flight
        state.degraded = True
        state.snapshot_in_flight = True
        book = state.book
        logger.warning(
            "Orderbook degraded",
            extra={
                "event": "orderbook_degraded",
                "venue": state.venue,
                "pair": str(book.pair if book else update.pair if update else ""),
                "reason": reason,
            },
        )
        return not already

    def _request_resync(self, venue: str, pair: Pair, asset: AssetClass) -> None:
        handler = self.resync_handler
        if handler is None:
            return
        try:
            handler(venue, pair, asset)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Orderbook resync request failed",
                extra={"event": "orderbook_resync_failed", "venue": venue, "pair": str(pair)},
            )
