"""Websocket dialing and connection tuning.

The connection manager only talks to a ``Dialer``; the default one opens
sockets with ``websockets.connect``. Tests swap in an in-memory dialer.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Protocol

import websockets


@dataclass(frozen=True)
class TransportConfig:
    """Websocket timing and sizing settings, all durations in seconds."""

    ping_interval: float | None = 30
    ping_timeout: float | None = 10
    close_timeout: float = 10
    base_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    jitter: float = 0.2
    max_size: int | None = None
    max_queue: int | None = None
    traffic_timeout: float = 30.0
    response_timeout: float = 7.0
    response_check_interval: float = 0.03
    decode_failure_threshold: int = 3
    shutdown_grace: float = 5.0
    max_reconnect_attempts: int | None = None
    channel_capacity: int = 1024


class SocketLike(Protocol):
    """The subset of a websocket connection the manager needs."""

    async def send(self, message: str | bytes) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


class Dialer(Protocol):
    async def dial(self, url: str) -> SocketLike: ...


class WebsocketsDialer:
    """Dialer backed by the ``websockets`` client."""

    def __init__(self, config: TransportConfig | None = None) -> None:
        self._conf = config or TransportConfig()

    def _connect_kwargs(self) -> dict[str, Any]:
        conf = self._conf
        kwargs: dict[str, Any] = {
            "ping_interval": conf.ping_interval,
            "ping_timeout": conf.ping_timeout,
            "close_timeout": conf.close_timeout,
        }
        # Only include size/queue if set, keeping library defaults otherwise
        if conf.max_size is not None:
            kwargs["max_size"] = conf.max_size
        if conf.max_queue is not None:
            kwargs["max_queue"] = conf.max_queue
        return kwargs

    async def dial(self, url: str) -> SocketLike:
        return await websockets.connect(url, **self._connect_kwargs())


def next_delay(conf: TransportConfig, delay: float) -> float:
    """Exponential backoff with jitter, capped to max_reconnect_delay."""
    delay = min(max(delay, conf.base_reconnect_delay) * 2, conf.max_reconnect_delay)
    factor = random.uniform(1 - conf.jitter, 1 + conf.jitter)
    return max(0.0, delay * factor)
