"""Token bucket rate limiter.

One bucket per endpoint class of a venue. Acquisition waits until a token is
available; when the limiter is disabled acquisition returns immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "default"


@dataclass(frozen=True)
class RateLimitRule:
    """``burst`` requests refilled evenly over ``interval`` seconds."""

    interval: float = 1.0
    burst: int = 10

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.burst < 1:
            raise ValueError("burst must be at least 1")

    @property
    def rate(self) -> float:
        return self.burst / self.interval


@dataclass
class RateLimitConfig:
    default: RateLimitRule = field(default_factory=RateLimitRule)
    overrides: dict[str, RateLimitRule] = field(default_factory=dict)


class _Bucket:
    def __init__(self, rule: RateLimitRule, now: float) -> None:
        self.rule = rule
        self.tokens = float(rule.burst)
        self.updated = now

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated)
        self.tokens = min(float(self.rule.burst), self.tokens + elapsed * self.rule.rate)
        self.updated = now

    def wait_time(self) -> float:
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.rule.rate


class RateLimiter:
    """Per-venue limiter with one bucket per endpoint class."""

    def __init__(
        self,
        venue: str,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.venue = venue
        self.config = config or RateLimitConfig()
        self.enabled = True
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, _Bucket] = {}
        self._lock = asyncio.Lock()

    def disable(self) -> None:
        self.enabled = False

    def enable(self) -> None:
        self.enabled = True

    def rule_for(self, endpoint: str) -> RateLimitRule:
        return self.config.overrides.get(endpoint, self.config.default)

    async def acquire(self, endpoint: str = DEFAULT_ENDPOINT) -> float:
        """Take one token, waiting if the bucket is empty.

        Returns:
            Seconds spent waiting
        """
        if not self.enabled:
            return 0.0
        waited = 0.0
        async with self._lock:
            bucket = self._buckets.get(endpoint)
            if bucket is None:
                bucket = _Bucket(self.rule_for(endpoint), self._clock())
                self._buckets[endpoint] = bucket
            while True:
                bucket.refill(self._clock())
                delay = bucket.wait_time()
                if delay <= 0:
                    bucket.tokens -= 1
                    break
                logger.debug(
                    "Rate limiter waiting",
                    extra={"venue": self.venue, "endpoint": endpoint, "delay": delay},
                )
                await self._sleep(delay)
                waited += delay
        return waited

    def available(self, endpoint: str = DEFAULT_ENDPOINT) -> float:
        bucket = self._buckets.get(endpoint)
        if bucket is None:
            return float(self.rule_for(endpoint).burst)
        bucket.refill(self._clock())
        return bucket.tokens
