"""Caller-side retry for transient engine errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..core.exceptions import RateLimitError, is_transient_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``func()`` retrying transient failures with exponential backoff.

    Rate limit errors wait at least their ``retry_after``. Non-transient
    errors and the last failure propagate unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(attempts):
        try:
            return await func()
        except Exception as exc:
            if attempt == attempts - 1 or not is_transient_error(exc):
                raise
            delay = min(base_delay * (2**attempt), max_delay)
            if isinstance(exc, RateLimitError):
                delay = max(delay, exc.retry_after)
            logger.warning(
                "Retrying after transient error",
                extra={"attempt": attempt + 1, "attempts": attempts, "delay": delay, "error": str(exc)},
            )
            await sleep(delay)
    raise AssertionError("unreachable")
