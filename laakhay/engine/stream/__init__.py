"""Websocket core: connection state machine, ledger, correlation and routing."""

from .connection import Metrics, WebsocketConnection
from .frames import (
    AccountFrame,
    Frame,
    HeartbeatFrame,
    JSONStreamProtocol,
    OrderbookFrame,
    OrderFrame,
    ResponseFrame,
    StreamProtocol,
    TickerFrame,
    TradeFrame,
    UnhandledFrame,
    parse_json,
    preview,
    to_decimal,
    to_int,
    to_timestamp,
)
from .ledger import Subscription, SubscriptionLedger
from .matcher import ResponseMatcher
from .router import DataChannel, StreamRouter
from .transport import Dialer, SocketLike, TransportConfig, WebsocketsDialer, next_delay

__all__ = [
    "WebsocketConnection",
    "Metrics",
    "Subscription",
    "SubscriptionLedger",
    "ResponseMatcher",
    "StreamRouter",
    "DataChannel",
    "TransportConfig",
    "Dialer",
    "SocketLike",
    "WebsocketsDialer",
    "next_delay",
    "StreamProtocol",
    "JSONStreamProtocol",
    "Frame",
    "TickerFrame",
    "OrderbookFrame",
    "TradeFrame",
    "OrderFrame",
    "AccountFrame",
    "ResponseFrame",
    "HeartbeatFrame",
    "UnhandledFrame",
    "parse_json",
    "preview",
    "to_decimal",
    "to_int",
    "to_timestamp",
]
