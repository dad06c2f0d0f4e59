"""Test doubles: an in-process venue, an in-memory websocket and an HTTP transport."""

from __future__ import annotations

import asyncio
import itertools
import json
from collections import Counter, deque
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from laakhay.engine.cache import CacheFacade
from laakhay.engine.core.base import VenueBase
from laakhay.engine.core.capabilities import Capability, Features, WithdrawPermission
from laakhay.engine.core.enums import AssetClass, Interval, OrderStatus
from laakhay.engine.core.exceptions import NotFoundError, VenueError
from laakhay.engine.models.account import Balance, Holdings, SubAccount
from laakhay.engine.models.currency import Code, Pair, new_pair
from laakhay.engine.models.kline import Candle
from laakhay.engine.models.order import (
    CancelAllResponse,
    GetOrdersRequest,
    OrderCancel,
    OrderDetail,
    OrderSubmit,
    SubmitResponse,
)
from laakhay.engine.models.orderbook import Level, OrderBook
from laakhay.engine.models.ticker import Ticker
from laakhay.engine.models.withdraw import VenueWithdrawResponse, WithdrawRequest
from laakhay.engine.runtime.requester import Credentials, PreparedRequest, TransportResponse
from laakhay.engine.stream.frames import JSONStreamProtocol
from laakhay.engine.stream.transport import TransportConfig

BTC_USD = new_pair("BTC", "USD", "-")
ETH_USD = new_pair("ETH", "USD", "-")

ALL_CAPABILITIES = Capability(0)
for _flag in Capability:
    ALL_CAPABILITIES |= _flag

FAST_STREAM = TransportConfig(
    ping_interval=None,
    base_reconnect_delay=0,
    jitter=0,
    traffic_timeout=0,
    response_timeout=1.0,
    response_check_interval=0.01,
    shutdown_grace=1.0,
    close_timeout=1.0,
)


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds; fails the test after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakeSocket:
    """In-memory socket; acknowledges subscribe, unsubscribe and auth requests."""

    def __init__(self, *, auto_ack: bool = True, reject: set[str] | None = None) -> None:
        self.sent: list[str] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.auto_ack = auto_ack
        self.reject = reject or set()

    async def send(self, message: str | bytes) -> None:
        if self.closed:
            raise ConnectionError("socket closed")
        self.sent.append(message)
        body = json.loads(message)
        method = body.get("method")
        if not self.auto_ack or "id" not in body:
            return
        if method in ("subscribe", "unsubscribe", "auth"):
            channel = body.get("params", {}).get("channel", method)
            if channel in self.reject:
                self.feed({"id": body["id"], "error": f"{channel} rejected"})
            else:
                self.feed({"id": body["id"], "result": True})

    async def recv(self) -> str | bytes:
        item = await self.incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def feed(self, message: Any) -> None:
        self.incoming.put_nowait(message if isinstance(message, (str, bytes)) else json.dumps(message))

    def kill(self) -> None:
        self.incoming.put_nowait(ConnectionError("connection reset by peer"))

    def methods(self, method: str) -> list[dict[str, Any]]:
        bodies = [json.loads(message) for message in self.sent]
        return [body for body in bodies if body.get("method") == method]


class FakeDialer:
    """Hands out a fresh FakeSocket per dial; ``fail`` makes the next dials raise."""

    def __init__(self, **socket_kwargs: Any) -> None:
        self.sockets: list[FakeSocket] = []
        self.fail = 0
        self.socket_kwargs = socket_kwargs

    async def dial(self, url: str) -> FakeSocket:
        if self.fail > 0:
            self.fail -= 1
            raise ConnectionError(f"cannot reach {url}")
        socket = FakeSocket(**self.socket_kwargs)
        self.sockets.append(socket)
        return socket

    @property
    def current(self) -> FakeSocket:
        return self.sockets[-1]


class FakeTransport:
    """Scripted HTTP transport returning queued responses in order."""

    def __init__(self, *responses: TransportResponse | Exception) -> None:
        self.responses = deque(responses)
        self.requests: list[PreparedRequest] = []
        self.closed = False

    async def send(self, request: PreparedRequest, timeout: float) -> TransportResponse:
        self.requests.append(request)
        item = self.responses.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def json_response(payload: Any, status: int = 200, headers: dict[str, str] | None = None) -> TransportResponse:
    return TransportResponse(status=status, body=json.dumps(payload).encode(), headers=headers or {})


class FakeVenue(VenueBase):
    """Venue answering from memory and counting every hook call."""

    name = "fakex"
    base_url = "https://api.fakex.test"
    websocket_url = "wss://stream.fakex.test/ws"
    features = Features(
        capabilities=ALL_CAPABILITIES,
        withdraw_permissions=WithdrawPermission.AUTO_WITHDRAW_CRYPTO | WithdrawPermission.AUTO_WITHDRAW_FIAT,
        intervals=frozenset({Interval.M1, Interval.H1}),
        kline_result_limit=100,
    )
    assets = (AssetClass.SPOT, AssetClass.FUTURES)

    def __init__(self, caches: CacheFacade | None = None, **kwargs: Any) -> None:
        super().__init__(caches, **kwargs)
        self.calls: Counter[str] = Counter()
        self.last = Decimal("100")
        self.listed = [BTC_USD, ETH_USD]
        self.orders: dict[str, OrderDetail] = {}
        self.withdrawals: list[WithdrawRequest] = []
        self.withdraw_error: Exception | None = None
        self._order_ids = itertools.count(1)

    def sign(self, request: PreparedRequest, credentials: Credentials) -> PreparedRequest:
        request.headers["X-KEY"] = credentials.key
        return request

    def create_stream_protocol(self) -> JSONStreamProtocol:
        return JSONStreamProtocol()

    async def load_tradable_pairs(self, asset: AssetClass) -> list[Pair]:
        self.calls["pairs"] += 1
        return list(self.listed)

    async def load_ticker(self, pair: Pair, asset: AssetClass) -> Ticker:
        self.calls["ticker"] += 1
        return Ticker(
            venue=self.name,
            pair=pair,
            asset=asset,
            last=self.last,
            bid=self.last - 1,
            ask=self.last + 1,
        )

    async def load_orderbook(self, pair: Pair, asset: AssetClass) -> OrderBook:
        self.calls["orderbook"] += 1
        return OrderBook(
            venue=self.name,
            pair=pair,
            asset=asset,
            asks=[Level(Decimal("101"), Decimal("2"))],
            bids=[Level(Decimal("99"), Decimal("1"))],
        )

    async def load_account(self) -> Holdings:
        self.calls["account"] += 1
        balances = [Balance(currency=Code("BTC"), total=Decimal("2"), hold=Decimal("0.5"))]
        return Holdings(venue=self.name, accounts=[SubAccount.from_balances(balances)])

    async def load_candles(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> list[Candle]:
        self.calls["candles"] += 1
        candles = []
        cursor = start
        while cursor < end:
            candles.append(
                Candle(
                    time=cursor,
                    open=Decimal("10"),
                    high=Decimal("12"),
                    low=Decimal("9"),
                    close=Decimal("11"),
                    volume=Decimal("1"),
                )
            )
            cursor += interval.duration
        # Newest first, as many venues answer.
        return list(reversed(candles))

    async def submit_order(self, order: OrderSubmit) -> SubmitResponse:
        self.calls["submit"] += 1
        order_id = f"ord-{next(self._order_ids)}"
        self.orders[order_id] = OrderDetail(
            venue=self.name,
            id=order_id,
            pair=order.pair,
            asset=order.asset,
            side=order.side,
            type=order.type,
            status=OrderStatus.NEW,
            price=order.price,
            amount=order.amount,
            date=datetime.now(UTC),
        )
        return SubmitResponse(order_id=order_id, placed=True)

    async def cancel_order(self, order: OrderCancel) -> None:
        self.calls["cancel"] += 1
        detail = self.orders.get(order.order_id)
        if detail is None:
            raise VenueError(f"unknown order {order.order_id}", venue=self.name, code=404)
        self.orders[order.order_id] = detail.model_copy(update={"status": OrderStatus.CANCELLED})

    async def cancel_all_orders(self, order: OrderCancel) -> CancelAllResponse:
        self.calls["cancel_all"] += 1
        status = {}
        for order_id, detail in self.orders.items():
            if not detail.status.is_terminal:
                self.orders[order_id] = detail.model_copy(update={"status": OrderStatus.CANCELLED})
                status[order_id] = str(OrderStatus.CANCELLED)
        return CancelAllResponse(status=status)

    async def get_order_info(
        self, order_id: str, pair: Pair | None = None, asset: AssetClass = AssetClass.SPOT
    ) -> OrderDetail:
        self.calls["order_info"] += 1
        try:
            return self.orders[order_id]
        except KeyError:
            raise NotFoundError(f"order {order_id} not found") from None

    async def get_active_orders(self, request: GetOrdersRequest) -> list[OrderDetail]:
        return [detail for detail in self.orders.values() if not detail.status.is_terminal]

    async def get_order_history(self, request: GetOrdersRequest) -> list[OrderDetail]:
        return list(self.orders.values())

    async def get_deposit_address(self, currency: Code, account_id: str = "", chain: str = "") -> str:
        return f"{currency.lower()}-deposit-address"

    async def withdraw_crypto(self, request: WithdrawRequest) -> VenueWithdrawResponse:
        if self.withdraw_error is not None:
            raise self.withdraw_error
        self.withdrawals.append(request)
        return VenueWithdrawResponse(id=f"wd-{len(self.withdrawals)}", status="pending")

    async def withdraw_fiat(self, request: WithdrawRequest) -> VenueWithdrawResponse:
        if self.withdraw_error is not None:
            raise self.withdraw_error
        self.withdrawals.append(request)
        return VenueWithdrawResponse(id=f"wd-{len(self.withdrawals)}", status="pending")


def fake_venue(*, authenticated: bool = False, **kwargs: Any) -> FakeVenue:
    venue = FakeVenue(**kwargs)
    venue.set_enabled(True)
    venue.pairs.set_pairs([BTC_USD, ETH_USD], AssetClass.SPOT, enabled=False)
    venue.pairs.set_pairs([BTC_USD], AssetClass.SPOT, enabled=True)
    if authenticated:
        venue.set_credentials(Credentials(key="key", secret="secret"))
    return venue


def engine_document(**exchange: Any) -> dict[str, Any]:
    """Legacy-style configuration with one fakex exchange."""
    entry = {
        "name": "fakex",
        "enabled": True,
        "currencyPairs": {
            "requestFormat": {"uppercase": True, "delimiter": ""},
            "configFormat": {"uppercase": True, "delimiter": "-"},
            "pairs": {
                "spot": {"enabled": "BTC-USD", "available": "BTC-USD,ETH-USD", "assetEnabled": True},
            },
        },
        "api": {
            "authenticatedSupport": True,
            "credentials": {"key": "key", "secret": "secret"},
        },
        "features": {"enabled": {"autoPairUpdates": False, "websocketAPI": False}},
    }
    entry.update(exchange)
    return {
        "name": "test",
        "exchanges": [entry],
        "bankAccounts": [
            {
                "id": "bank-1",
                "enabled": True,
                "bankName": "Test Bank",
                "accountName": "Satoshi",
                "accountNumber": "123456",
                "swiftCode": "TESTAU2S",
                "bankCountry": "DE",
                "supportedCurrencies": "USD,EUR",
                "supportedExchanges": "ALL",
            }
        ],
    }


