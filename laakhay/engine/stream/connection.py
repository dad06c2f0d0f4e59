"""Websocket connection manager.

Architecture:
    One WebsocketConnection owns one venue socket and three kinds of tasks:
    a reader task per dialed socket (decode and route frames), a supervisor
    task (pings, traffic timeout, response deadline sweep) and, after a
    fault, a recovery task (backoff, redial, re-authenticate, replay).

    State machine::

        Disconnected -> Dialing
        Dialing -> Connected | Disconnected
        Connected -> Authenticating | Subscribed
        Authenticating -> Authenticated | Degraded
        Authenticated -> Subscribed
        Subscribed -> Degraded
        Degraded -> Dialing
        any -> Closed

    Connected and Authenticated may also drop to Degraded when the socket
    dies before the first subscription.

Design Decisions:
    - The subscription ledger is written only here; subscribe and
      unsubscribe are idempotent and serialized by one lock
    - On recovery every ledger entry is resubscribed exactly once, in
      ledger order, before the state becomes Subscribed; the replay holds
      the subscription lock, so new subscribes wait for it to finish
    - A failed authentication degrades the connection and disables auth
      for later attempts until ``enable_auth`` is called
    - N consecutive decode failures (default 3) degrade the connection
    - Shutdown drains response waiters with WSClosedError and waits at most
      ``shutdown_grace`` seconds for tasks to exit

See Also:
    - stream.matcher: Response correlation
    - stream.router: Frame dispatch
    - stream.transport: Dialer and backoff settings
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.enums import ConnectionState
from ..core.exceptions import (
    AuthRejectedError,
    DecodeError,
    EngineError,
    UnsupportedError,
    VenueError,
    WSClosedError,
    WSProtocolError,
)
from .frames import Frame, ResponseFrame, StreamProtocol
from .ledger import Subscription, SubscriptionLedger
from .matcher import ResponseMatcher
from .router import StreamRouter
from .transport import Dialer, SocketLike, TransportConfig, WebsocketsDialer, next_delay

logger = logging.getLogger(__name__)

S = ConnectionState

_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    S.DISCONNECTED: frozenset({S.DIALING}),
    S.DIALING: frozenset({S.CONNECTED, S.DISCONNECTED}),
    S.CONNECTED: frozenset({S.AUTHENTICATING, S.SUBSCRIBED, S.DEGRADED}),
    S.AUTHENTICATING: frozenset({S.AUTHENTICATED, S.DEGRADED}),
    S.AUTHENTICATED: frozenset({S.SUBSCRIBED, S.DEGRADED}),
    S.SUBSCRIBED: frozenset({S.DEGRADED}),
    S.DEGRADED: frozenset({S.DIALING}),
    S.CLOSED: frozenset(),
}

_LIVE = frozenset({S.CONNECTED, S.AUTHENTICATED, S.SUBSCRIBED})


@dataclass
class Metrics:
    """Connection counters."""

    frames_received: int = 0
    decode_failures: int = 0
    dropped_messages: int = 0
    reconnect_attempts: int = 0
    reconnects: int = 0
    messages_sent: int = 0


class WebsocketConnection:
    """Stateful websocket client for one venue endpoint."""

    def __init__(
        self,
        venue: str,
        url: str,
        protocol: StreamProtocol,
        router: StreamRouter,
        *,
        dialer: Dialer | None = None,
        config: TransportConfig | None = None,
        authenticate: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.venue = venue
        self.url = url
        self.protocol = protocol
        self.router = router
        self.config = config or TransportConfig()
        self.dialer: Dialer = dialer or WebsocketsDialer(self.config)
        self.ledger = SubscriptionLedger()
        self.matcher = ResponseMatcher(self.config.response_timeout, clock=clock)
        self.metrics = Metrics()
        self.state = S.DISCONNECTED
        self.state_history: list[ConnectionState] = [S.DISCONNECTED]
        self.auth_requested = authenticate
        self.auth_disabled = False
        self.last_error: str | None = None

        self._clock = clock
        self._socket: SocketLike | None = None
        self._reader: asyncio.Task | None = None
        self._supervisor: asyncio.Task | None = None
        self._recovery: asyncio.Task | None = None
        self._sub_lock = asyncio.Lock()
        self._last_frame = clock()
        self._last_ping = clock()
        self._decode_streak = 0
        self._authenticated = False

    # Lifecycle

    @property
    def is_connected(self) -> bool:
        return self.state in _LIVE

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated and self.state in _LIVE

    async def connect(self) -> None:
        """Dial, authenticate if requested and replay the ledger.

        Raises:
            WSClosedError: If the connection was shut down or the dial failed
            AuthRejectedError: If authentication failed; recovery continues
                in the background without authentication
        """
        if self.state is S.CLOSED:
            raise WSClosedError(f"{self.venue} websocket is closed")
        if self.state is not S.DISCONNECTED:
            return
        try:
            await self._establish()
        except AuthRejectedError:
            self._schedule_recovery()
            raise
        finally:
            if self.state is not S.CLOSED and self._supervisor is None:
                self._supervisor = asyncio.create_task(
                    self._supervise(), name=f"{self.venue}-ws-supervisor"
                )

    async def shutdown(self) -> None:
        """Close the socket, fail waiters and stop every task."""
        if self.state is S.CLOSED:
            return
        self._transition(S.CLOSED)
        self.matcher.drain(WSClosedError(f"{self.venue} websocket shut down"))

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._reader, self._supervisor, self._recovery)
            if task is not None and task is not current and not task.done()
        ]
        await self._close_socket()
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.config.shutdown_grace)
            if pending:
                logger.warning(
                    "Websocket tasks did not exit within grace period",
                    extra={"venue": self.venue, "pending": len(pending)},
                )
        self._reader = self._supervisor = self._recovery = None

    def enable_auth(self) -> None:
        """Allow authentication again after a rejection."""
        self.auth_disabled = False

    async def authenticate(self) -> None:
        """Authenticate a Connected socket.

        A connection that is already authenticated is left as is.

        Raises:
            WSProtocolError: If the connection is in any other state
        """
        if self.is_authenticated:
            return
        if self.state is not S.CONNECTED:
            raise WSProtocolError(f"{self.venue} cannot authenticate in state {self.state}")
        self.auth_requested = True
        self.auth_disabled = False
        try:
            await self._authenticate()
        except AuthRejectedError:
            self._schedule_recovery()
            raise

    # Subscriptions

    async def subscribe(self, subscription: Subscription) -> bool:
        """Subscribe once; returns False if the entry already exists.

        Raises:
            WSClosedError: If the connection is not live
            VenueError: If the venue rejected the subscription
        """
        async with self._sub_lock:
            if subscription in self.ledger:
                return False
            self._require_live()
            await self._request(
                "subscribe",
                lambda mid: self.protocol.subscribe_message(subscription, mid),
            )
            self.ledger.add(subscription)
            if self.state in (S.CONNECTED, S.AUTHENTICATED):
                self._transition(S.SUBSCRIBED)
            return True

    async def unsubscribe(self, subscription: Subscription) -> bool:
        """Unsubscribe once; returns False if the entry is absent.

        While the connection is down the entry is only removed from the
        ledger, so it is not replayed.
        """
        async with self._sub_lock:
            if subscription not in self.ledger:
                return False
            if self.is_connected:
                await self._request(
                    "unsubscribe",
                    lambda mid: self.protocol.unsubscribe_message(subscription, mid),
                )
            self.ledger.remove(subscription)
            return True

    def subscriptions(self) -> list[Subscription]:
        return self.ledger.snapshot()

    async def request(self, method: str, build: Callable[[int | None], str]) -> Any:
        """Send a correlated request and wait for its response payload."""
        self._require_live()
        return await self._request(method, build)

    # Internals

    def _transition(self, new: ConnectionState) -> None:
        old = self.state
        if new is old:
            return
        if new is not S.CLOSED and new not in _TRANSITIONS[old]:
            raise WSProtocolError(f"{self.venue} invalid websocket transition {old} -> {new}")
        self.state = new
        self.state_history.append(new)
        logger.info(
            "ws_state_transition",
            extra={"venue": self.venue, "from_state": str(old), "to_state": str(new)},
        )

    def _require_live(self) -> None:
        if not self.is_connected:
            raise WSClosedError(f"{self.venue} websocket not connected (state {self.state})")

    def _expect(self, *states: ConnectionState) -> None:
        if self.state not in states:
            raise WSClosedError(f"{self.venue} websocket lost during setup (state {self.state})")

    async def _establish(self) -> None:
        self._transition(S.DIALING)
        self._authenticated = False
        try:
            socket = await self.dialer.dial(self.url)
        except Exception as exc:
            self.last_error = str(exc)
            if self.state is S.DIALING:
                self._transition(S.DISCONNECTED)
            raise WSClosedError(f"{self.venue} dial failed: {exc}") from exc
        if self.state is S.CLOSED:
            await _close_quietly(socket, self.venue)
            raise WSClosedError(f"{self.venue} websocket shut down while dialing")

        self._socket = socket
        self._last_frame = self._last_ping = self._clock()
        self._decode_streak = 0
        self._transition(S.CONNECTED)
        self._reader = asyncio.create_task(self._read(socket), name=f"{self.venue}-ws-reader")

        if self.auth_requested and not self.auth_disabled:
            await self._authenticate()
        async with self._sub_lock:
            await self._replay()

    async def _authenticate(self) -> None:
        message = self.protocol.auth_message(None)
        if message is None:
            raise UnsupportedError(
                f"websocket authentication unsupported by {self.venue}", venue=self.venue
            )
        self._transition(S.AUTHENTICATING)
        try:
            await self._request("auth", self.protocol.auth_message)
        except EngineError as exc:
            self.last_error = str(exc)
            self.auth_disabled = True
            logger.warning(
                "Websocket authentication failed",
                extra={"venue": self.venue, "error": str(exc)},
            )
            self._degrade(f"authentication failed: {exc}")
            raise AuthRejectedError(f"{self.venue} websocket authentication failed: {exc}") from exc
        self._expect(S.AUTHENTICATING)
        self._authenticated = True
        self._transition(S.AUTHENTICATED)

    async def _replay(self) -> None:
        entries = self.ledger.snapshot()
        if not entries:
            return
        for subscription in entries:
            self._expect(*_LIVE)
            try:
                await self._request(
                    "subscribe",
                    lambda mid, sub=subscription: self.protocol.subscribe_message(sub, mid),
                )
            except VenueError as exc:
                self.ledger.remove(subscription)
                logger.warning(
                    "Subscription rejected on replay",
                    extra={"venue": self.venue, "subscription": str(subscription), "error": str(exc)},
                )
        self._expect(*_LIVE)
        if self.state is not S.SUBSCRIBED:
            self._transition(S.SUBSCRIBED)

    async def _request(self, method: str, build: Callable[[int | None], str]) -> Any:
        message_id = self.matcher.next_id() if self.protocol.uses_message_ids else None
        waiter = None
        if self.protocol.expects_response(method):
            if message_id is not None:
                waiter = self.matcher.register(message_id)
            else:
                waiter = self.matcher.register_method(method)
        await self._send(build(message_id))
        if waiter is None:
            return None
        return await self.matcher.wait(waiter)

    async def _send(self, message: str) -> None:
        socket = self._socket
        if socket is None:
            raise WSClosedError(f"{self.venue} websocket not connected")
        try:
            await socket.send(message)
        except Exception as exc:
            self._fail(f"send failed: {exc}")
            raise WSClosedError(f"{self.venue} send failed: {exc}") from exc
        self.metrics.messages_sent += 1

    async def _read(self, socket: SocketLike) -> None:
        while True:
            try:
                raw = await socket.recv()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if socket is self._socket:
                    self._fail(f"receive failed: {exc}")
                return
            self._last_frame = self._clock()
            self.metrics.frames_received += 1
            try:
                frames = self.protocol.decode(raw)
            except DecodeError as exc:
                self.metrics.decode_failures += 1
                self._decode_streak += 1
                logger.warning(
                    "Failed to decode stream message",
                    extra={"venue": self.venue, "error": str(exc), "streak": self._decode_streak},
                )
                if self._decode_streak >= self.config.decode_failure_threshold:
                    self._fail(f"{self._decode_streak} consecutive decode failures")
                    return
                continue
            self._decode_streak = 0
            for frame in frames:
                self._handle(frame)

    def _handle(self, frame: Frame) -> None:
        if isinstance(frame, ResponseFrame):
            error = VenueError(frame.error, venue=self.venue) if frame.error else None
            delivered = False
            if frame.id is not None:
                delivered = self.matcher.resolve(frame.id, frame.payload, error)
            elif frame.method is not None:
                delivered = self.matcher.resolve_method(frame.method, frame.payload, error)
            if not delivered:
                logger.debug(
                    "Uncorrelated stream response",
                    extra={"venue": self.venue, "id": frame.id, "method": frame.method},
                )
            return
        try:
            self.router.dispatch(frame)
        except EngineError as exc:
            logger.warning(
                "Stream frame rejected",
                extra={"venue": self.venue, "frame": type(frame).__name__, "error": str(exc)},
            )
        self.metrics.dropped_messages = self.router.dropped

    async def _supervise(self) -> None:
        conf = self.config
        tick = max(conf.response_check_interval, 0.005)
        while self.state is not S.CLOSED:
            await asyncio.sleep(tick)
            self.matcher.expire()
            if self.state not in _LIVE:
                continue
            now = self._clock()
            if conf.traffic_timeout and now - self._last_frame > conf.traffic_timeout:
                self._fail(f"no traffic for {conf.traffic_timeout}s")
                continue
            if conf.ping_interval and now - self._last_ping >= conf.ping_interval:
                self._last_ping = now
                ping = self.protocol.ping_message()
                if ping is not None:
                    with contextlib.suppress(WSClosedError):
                        await self._send(ping)

    def _degrade(self, reason: str) -> None:
        if S.DEGRADED not in _TRANSITIONS[self.state]:
            return
        self.last_error = reason
        logger.warning("Websocket degraded", extra={"venue": self.venue, "reason": reason})
        self._transition(S.DEGRADED)
        self.matcher.drain(WSClosedError(f"{self.venue} websocket degraded: {reason}"))

    def _fail(self, reason: str) -> None:
        if S.DEGRADED not in _TRANSITIONS[self.state]:
            return
        self._degrade(reason)
        self._schedule_recovery()

    def _schedule_recovery(self) -> None:
        if self.state is S.CLOSED:
            return
        if self._recovery is None or self._recovery.done():
            self._recovery = asyncio.create_task(self._recover(), name=f"{self.venue}-ws-recovery")

    async def _recover(self) -> None:
        conf = self.config
        delay = conf.base_reconnect_delay
        attempts = 0
        while self.state is not S.CLOSED:
            await self._close_socket()
            await asyncio.sleep(delay)
            if self.state is S.CLOSED:
                return
            attempts += 1
            self.metrics.reconnect_attempts += 1
            try:
                await self._establish()
            except EngineError as exc:
                self.last_error = str(exc)
                logger.warning(
                    "Websocket reconnect attempt failed",
                    extra={"venue": self.venue, "attempt": attempts, "error": str(exc)},
                )
                self._degrade(str(exc))
                if conf.max_reconnect_attempts is not None and attempts >= conf.max_reconnect_attempts:
                    logger.error(
                        "Websocket reconnect attempts exhausted",
                        extra={"venue": self.venue, "attempts": attempts},
                    )
                    return
                delay = next_delay(conf, delay)
                continue
            self.metrics.reconnects += 1
            logger.info(
                "Websocket reconnected",
                extra={"venue": self.venue, "attempts": attempts, "subscriptions": len(self.ledger)},
            )
            return

    async def _close_socket(self) -> None:
        socket, self._socket = self._socket, None
        reader, self._reader = self._reader, None
        if socket is not None:
            await _close_quietly(socket, self.venue, self.config.close_timeout)
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            await asyncio.wait({reader}, timeout=self.config.shutdown_grace)


async def _close_quietly(socket: SocketLike, venue: str, timeout: float = 10.0) -> None:
    try:
        await asyncio.wait_for(socket.close(), timeout)
    except (asyncio.TimeoutError, OSError, EngineError) as exc:
        logger.debug("Socket close failed", extra={"venue": venue, "error": str(exc)})
