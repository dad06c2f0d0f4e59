"""Dispatch of decoded frames to caches, ledgers and subscriber channels.

Architecture:
    Market data frames go straight into the shared caches: tickers are
    last-writer-wins, orderbook snapshots and deltas enter the orderbook
    update buffer. Order and account updates are forwarded to the order
    sink and published on the data channel. Trades and unhandled messages
    are published on bounded channels for subscribers.

Design Decisions:
    - Bounded channel: on overflow the oldest non-critical item is dropped
      first; order and account updates are critical and only give way to
      newer critical items once nothing else is left to shed
    - The order sink sees every order update, so a critical item dropped
      from the channel is never lost to the order manager
    - Orderbook updates never pass through the channel, so their overflow
      policy is the update buffer's (Degraded plus resync)
    - No cache lock is held while the order sink runs

See Also:
    - cache.orderbook: Update buffer semantics
    - stream.connection: Reader task that feeds this router
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..cache import CacheFacade
from ..models.order import OrderDetail
from .frames import (
    AccountFrame,
    Frame,
    HeartbeatFrame,
    OrderbookFrame,
    OrderFrame,
    ResponseFrame,
    TickerFrame,
    TradeFrame,
    UnhandledFrame,
)

logger = logging.getLogger(__name__)

OrderSink = Callable[[OrderDetail], None]


@dataclass
class _Item:
    value: Any
    critical: bool


class DataChannel:
    """Bounded FIFO that sheds the oldest non-critical item when full.

    When only critical items remain, a new critical item evicts the oldest
    one and a non-critical item is refused. The channel never holds more
    than ``capacity`` items.
    """

    def __init__(self, capacity: int = 1024) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self.capacity = capacity
        self.dropped = 0
        self.critical_dropped = 0
        self._items: deque[_Item] = deque()
        self._ready = asyncio.Event()

    def put_nowait(self, value: Any, *, critical: bool = False) -> bool:
        """Enqueue ``value``; returns False if it was dropped instead."""
        if len(self._items) >= self.capacity:
            victim = next((item for item in self._items if not item.critical), None)
            if victim is not None:
                self._items.remove(victim)
                self.dropped += 1
            elif not critical:
                self.dropped += 1
                return False
            else:
                self._items.popleft()
                self.dropped += 1
                self.critical_dropped += 1
                if self.critical_dropped == 1 or self.critical_dropped % self.capacity == 0:
                    logger.warning(
                        "Data channel full of critical items, dropping oldest",
                        extra={"capacity": self.capacity, "critical_dropped": self.critical_dropped},
                    )
        self._items.append(_Item(value, critical))
        self._ready.set()
        return True

    def get_nowait(self) -> Any:
        if not self._items:
            raise asyncio.QueueEmpty
        item = self._items.popleft()
        if not self._items:
            self._ready.clear()
        return item.value

    async def get(self) -> Any:
        while not self._items:
            await self._ready.wait()
        return self.get_nowait()

    def drain(self) -> list[Any]:
        values = [item.value for item in self._items]
        self._items.clear()
        self._ready.clear()
        return values

    def __len__(self) -> int:
        return len(self._items)


class StreamRouter:
    """Routes frames of one venue connection."""

    def __init__(
        self,
        venue: str,
        caches: CacheFacade,
        *,
        order_sink: OrderSink | None = None,
        capacity: int = 1024,
    ) -> None:
        self.venue = venue
        self.caches = caches
        self.order_sink = order_sink
        self.data = DataChannel(capacity)
        self.diagnostics = DataChannel(capacity)

    @property
    def dropped(self) -> int:
        return self.data.dropped + self.diagnostics.dropped

    def dispatch(self, frame: Frame) -> None:
        """Route one frame; ResponseFrame is left to the connection."""
        if isinstance(frame, TickerFrame):
            self.caches.tickers.process(frame.ticker)
        elif isinstance(frame, OrderbookFrame):
            self.caches.orderbooks.apply_update(frame.update)
        elif isinstance(frame, TradeFrame):
            for trade in frame.trades:
                self.data.put_nowait(trade)
        elif isinstance(frame, OrderFrame):
            if self.order_sink is not None:
                self.order_sink(frame.order)
            self.data.put_nowait(frame.order, critical=True)
        elif isinstance(frame, AccountFrame):
            self.caches.accounts.process(frame.holdings)
            self.data.put_nowait(frame.holdings, critical=True)
        elif isinstance(frame, UnhandledFrame):
            logger.debug(
                "Unhandled stream message",
                extra={"venue": self.venue, "reason": frame.reason, "raw": frame.raw},
            )
            self.diagnostics.put_nowait(frame)
        elif isinstance(frame, (HeartbeatFrame, ResponseFrame)):
            return
        else:
            raise TypeError(f"unknown frame type {type(frame).__name__}")
