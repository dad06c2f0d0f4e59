"""Unit tests for websocket response correlation."""

import asyncio

import pytest

from laakhay.engine.core.exceptions import VenueError, WSClosedError, WSTimeoutError
from laakhay.engine.stream.matcher import ResponseMatcher


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_resolve_by_id():
    matcher = ResponseMatcher(timeout=1.0)
    message_id = matcher.next_id()
    future = matcher.register(message_id)

    assert matcher.resolve(message_id, {"ok": True})
    assert await matcher.wait(future) == {"ok": True}
    assert not matcher.resolve(message_id, {"ok": True})
    assert len(matcher) == 0


@pytest.mark.asyncio
async def test_ids_are_monotonic():
    matcher = ResponseMatcher()
    assert [matcher.next_id() for _ in range(3)] == [1, 2, 3]


@pytest.mark.asyncio
async def test_error_response_raises():
    matcher = ResponseMatcher(timeout=1.0)
    future = matcher.register(7)
    matcher.resolve(7, error=VenueError("bad channel"))
    with pytest.raises(VenueError, match="bad channel"):
        await matcher.wait(future)


@pytest.mark.asyncio
async def test_method_waiters_resolve_in_send_order():
    matcher = ResponseMatcher(timeout=1.0)
    first = matcher.register_method("subscribe")
    second = matcher.register_method("subscribe")

    assert matcher.resolve_method("subscribe", "a")
    assert matcher.resolve_method("subscribe", "b")
    assert not matcher.resolve_method("subscribe", "c")
    assert await matcher.wait(first) == "a"
    assert await matcher.wait(second) == "b"


@pytest.mark.asyncio
async def test_wait_times_out():
    matcher = ResponseMatcher(timeout=0.01)
    future = matcher.register(1)
    with pytest.raises(WSTimeoutError, match="id 1"):
        await matcher.wait(future)
    assert len(matcher) == 0
    assert not matcher.resolve(1, "late")


@pytest.mark.asyncio
async def test_expire_uses_deadlines():
    clock = FakeClock()
    matcher = ResponseMatcher(timeout=5.0, clock=clock)
    short = matcher.register(1, timeout=1.0)
    long = matcher.register(2)
    by_method = matcher.register_method("auth", timeout=1.0)

    clock.now = 2.0
    assert matcher.expire() == 2

    assert isinstance(short.exception(), WSTimeoutError)
    assert isinstance(by_method.exception(), WSTimeoutError)
    assert not long.done()
    assert len(matcher) == 1


@pytest.mark.asyncio
async def test_drain_fails_everything():
    matcher = ResponseMatcher(timeout=5.0)
    futures = [matcher.register(1), matcher.register_method("subscribe")]

    assert matcher.drain(WSClosedError("closed")) == 2
    assert len(matcher) == 0
    for future in futures:
        with pytest.raises(WSClosedError):
            await future


@pytest.mark.asyncio
async def test_wait_resolved_concurrently():
    matcher = ResponseMatcher(timeout=1.0)
    future = matcher.register("abc")
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, matcher.resolve, "abc", 42)
    assert await matcher.wait(future) == 42
