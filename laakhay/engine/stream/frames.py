"""Typed websocket frames and fallible numeric coercions.

Venue protocols decode raw messages into one of the frame types below; the
router dispatches on the frame type. Coercions never default to zero: a value
that cannot be read raises DecodeError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from ..core.exceptions import DecodeError
from ..models.account import Holdings
from ..models.kline import Trade
from ..models.order import OrderDetail
from ..models.orderbook import OrderbookUpdate
from ..models.ticker import Ticker
from .ledger import Subscription

RAW_PREVIEW_LIMIT = 256


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Read a number or numeric string as Decimal."""
    if isinstance(value, bool) or value is None:
        raise DecodeError(f"{field_name}: expected number, got {value!r}", value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise DecodeError(f"{field_name}: cannot parse {value!r} as decimal", value) from exc
    if not result.is_finite():
        raise DecodeError(f"{field_name}: non-finite value {value!r}", value)
    return result


def to_int(value: Any, field_name: str = "value") -> int:
    """Read an integer or integral string."""
    if isinstance(value, bool) or value is None:
        raise DecodeError(f"{field_name}: expected integer, got {value!r}", value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise DecodeError(f"{field_name}: cannot parse {value!r} as integer", value) from exc


def to_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Read epoch milliseconds (number or string) as an aware datetime."""
    millis = to_int(value, field_name)
    return datetime.fromtimestamp(millis / 1000, tz=UTC)


def parse_json(raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(f"invalid json frame: {exc}", preview(raw)) from exc


def preview(raw: str | bytes, limit: int = RAW_PREVIEW_LIMIT) -> str:
    """Truncated printable copy of a raw payload."""
    text = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else str(raw)
    return text if len(text) <= limit else text[:limit] + "..."


@dataclass(frozen=True)
class TickerFrame:
    ticker: Ticker


@dataclass(frozen=True)
class OrderbookFrame:
    update: OrderbookUpdate


@dataclass(frozen=True)
class TradeFrame:
    trades: tuple[Trade, ...]


@dataclass(frozen=True)
class OrderFrame:
    order: OrderDetail


@dataclass(frozen=True)
class AccountFrame:
    holdings: Holdings


@dataclass(frozen=True)
class ResponseFrame:
    """Reply to a request; correlated by ``id`` or, failing that, ``method``."""

    id: int | str | None = None
    method: str | None = None
    payload: Any = None
    error: str | None = None


@dataclass(frozen=True)
class HeartbeatFrame:
    pass


@dataclass(frozen=True)
class UnhandledFrame:
    raw: str
    reason: str = ""


Frame = (
    TickerFrame
    | OrderbookFrame
    | TradeFrame
    | OrderFrame
    | AccountFrame
    | ResponseFrame
    | HeartbeatFrame
    | UnhandledFrame
)


class StreamProtocol(Protocol):
    """Venue-specific message building and decoding for one connection."""

    uses_message_ids: bool

    def subscribe_message(self, subscription: Subscription, message_id: int | None) -> str: ...

    def unsubscribe_message(self, subscription: Subscription, message_id: int | None) -> str: ...

    def auth_message(self, message_id: int | None) -> str | None: ...

    def ping_message(self) -> str | None: ...

    def decode(self, raw: str | bytes) -> list[Frame]: ...

    def expects_response(self, method: str) -> bool: ...


@dataclass
class JSONStreamProtocol:
    """Generic JSON protocol: ``{"id", "method", "params"}`` requests.

    Usable as-is for simple venues and as a base for venue protocols, which
    override ``decode_message`` to build typed frames.
    """

    uses_message_ids: bool = True
    acknowledged: frozenset[str] = field(default_factory=lambda: frozenset({"subscribe", "unsubscribe", "auth"}))

    def subscribe_message(self, subscription: Subscription, message_id: int | None) -> str:
        return self._request("subscribe", _sub_params(subscription), message_id)

    def unsubscribe_message(self, subscription: Subscription, message_id: int | None) -> str:
        return self._request("unsubscribe", _sub_params(subscription), message_id)

    def auth_message(self, message_id: int | None) -> str | None:
        return None

    def ping_message(self) -> str | None:
        return json.dumps({"method": "ping"})

    def expects_response(self, method: str) -> bool:
        return method in self.acknowledged

    def decode(self, raw: str | bytes) -> list[Frame]:
        message = parse_json(raw)
        if isinstance(message, dict):
            if message.get("method") == "pong" or message.get("type") == "pong":
                return [HeartbeatFrame()]
            if "result" in message or "error" in message:
                error = message.get("error")
                return [
                    ResponseFrame(
                        id=message.get("id"),
                        method=message.get("method"),
                        payload=message.get("result"),
                        error=str(error) if error else None,
                    )
                ]
        return self.decode_message(message, raw)

    def decode_message(self, message: Any, raw: str | bytes) -> list[Frame]:
        return [UnhandledFrame(raw=preview(raw), reason="unrecognized message")]

    def _request(self, method: str, params: dict[str, Any], message_id: int | None) -> str:
        body: dict[str, Any] = {"method": method, "params": params}
        if self.uses_message_ids and message_id is not None:
            body["id"] = message_id
        return json.dumps(body, sort_keys=True)


def _sub_params(subscription: Subscription) -> dict[str, Any]:
    params: dict[str, Any] = {"channel": subscription.channel}
    if subscription.pair is not None:
        params["pair"] = str(subscription.pair)
    if subscription.asset is not None:
        params["asset"] = str(subscription.asset)
    params.update({key: value for key, value in subscription.params})
    return params
