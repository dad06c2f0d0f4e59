"""Request/response correlation over a websocket.

Outbound requests get a monotonically allocated id. Waiters are keyed by id
with a deadline; protocols without ids correlate by method in send order.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections import deque
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import EngineError, WSTimeoutError


@dataclass
class _Waiter:
    future: asyncio.Future
    deadline: float
    label: str


class ResponseMatcher:
    """Waiting-set keyed by message id, plus per-method FIFO queues."""

    def __init__(
        self, timeout: float = 7.0, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._ids = itertools.count(1)
        self._by_id: dict[Hashable, _Waiter] = {}
        self._by_method: dict[str, deque[_Waiter]] = {}

    def next_id(self) -> int:
        return next(self._ids)

    def register(self, message_id: Hashable, timeout: float | None = None) -> asyncio.Future:
        waiter = self._waiter(f"id {message_id}", timeout)
        self._by_id[message_id] = waiter
        return waiter.future

    def register_method(self, method: str, timeout: float | None = None) -> asyncio.Future:
        waiter = self._waiter(f"method {method}", timeout)
        self._by_method.setdefault(method, deque()).append(waiter)
        return waiter.future

    def resolve(self, message_id: Hashable, payload: Any = None, error: Exception | None = None) -> bool:
        """Deliver a response to the waiter of ``message_id``."""
        waiter = self._by_id.pop(message_id, None)
        if waiter is None:
            return False
        return _settle(waiter, payload, error)

    def resolve_method(self, method: str, payload: Any = None, error: Exception | None = None) -> bool:
        """Deliver a response to the oldest live waiter of ``method``."""
        queue = self._by_method.get(method)
        while queue:
            waiter = queue.popleft()
            if _settle(waiter, payload, error):
                return True
        return False

    async def wait(self, future: asyncio.Future) -> Any:
        """Await a registered future; raises WSTimeoutError past its deadline."""
        waiter = self._find(future)
        remaining = max(0.0, waiter.deadline - self._clock()) if waiter else self.timeout
        try:
            return await asyncio.wait_for(asyncio.shield(future), remaining)
        except asyncio.TimeoutError:
            label = waiter.label if waiter else "response"
            self._discard(future)
            error = WSTimeoutError(f"no response for {label} within deadline")
            if not future.done():
                future.set_exception(error)
                future.exception()
            raise error from None

    def expire(self) -> int:
        """Fail every waiter past its deadline with WSTimeoutError."""
        now = self._clock()
        expired = 0
        for key, waiter in list(self._by_id.items()):
            if waiter.deadline <= now:
                del self._by_id[key]
                expired += _fail(waiter, WSTimeoutError(f"no response for {waiter.label}"))
        for queue in self._by_method.values():
            for waiter in [w for w in queue if w.deadline <= now]:
                queue.remove(waiter)
                expired += _fail(waiter, WSTimeoutError(f"no response for {waiter.label}"))
        return expired

    def drain(self, error: EngineError) -> int:
        """Fail every pending waiter with ``error``."""
        drained = 0
        for waiter in self._by_id.values():
            drained += _fail(waiter, error)
        for queue in self._by_method.values():
            for waiter in queue:
                drained += _fail(waiter, error)
        self._by_id.clear()
        self._by_method.clear()
        return drained

    def __len__(self) -> int:
        return len(self._by_id) + sum(len(q) for q in self._by_method.values())

    def _waiter(self, label: str, timeout: float | None) -> _Waiter:
        future = asyncio.get_running_loop().create_future()
        deadline = self._clock() + (self.timeout if timeout is None else timeout)
        return _Waiter(future=future, deadline=deadline, label=label)

    def _find(self, future: asyncio.Future) -> _Waiter | None:
        for waiter in self._by_id.values():
            if waiter.future is future:
                return waiter
        for queue in self._by_method.values():
            for waiter in queue:
                if waiter.future is future:
                    return waiter
        return None

    def _discard(self, future: asyncio.Future) -> None:
        for key, waiter in list(self._by_id.items()):
            if waiter.future is future:
                del self._by_id[key]
        for queue in self._by_method.values():
            for waiter in [w for w in queue if w.future is future]:
                queue.remove(waiter)


def _settle(waiter: _Waiter, payload: Any, error: Exception | None) -> bool:
    if waiter.future.done():
        return False
    if error is not None:
        waiter.future.set_exception(error)
    else:
        waiter.future.set_result(payload)
    return True


def _fail(waiter: _Waiter, error: Exception) -> int:
    if waiter.future.done():
        return 0
    waiter.future.set_exception(error)
    # Mark retrieved so unawaited waiters do not log "exception never retrieved".
    waiter.future.exception()
    return 1
