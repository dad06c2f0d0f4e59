"""Unit tests for frame coercions and the generic JSON protocol."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from fakes import BTC_USD
from laakhay.engine.core.enums import AssetClass
from laakhay.engine.core.exceptions import DecodeError
from laakhay.engine.stream.frames import (
    HeartbeatFrame,
    JSONStreamProtocol,
    ResponseFrame,
    UnhandledFrame,
    parse_json,
    preview,
    to_decimal,
    to_int,
    to_timestamp,
)
from laakhay.engine.stream.ledger import Subscription


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1.50", Decimal("1.50")), (2, Decimal(2)), (0.1, Decimal("0.1")), (" 3 ", Decimal(3))],
)
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", [None, True, "", "abc", "NaN", "Infinity"])
def test_to_decimal_never_defaults_to_zero(value):
    with pytest.raises(DecodeError):
        to_decimal(value, "price")


def test_to_int_and_timestamp():
    assert to_int("42") == 42
    with pytest.raises(DecodeError):
        to_int("4.2")
    with pytest.raises(DecodeError):
        to_int(False)
    assert to_timestamp("1704067200000") == datetime(2024, 1, 1, tzinfo=UTC)


def test_parse_json_and_preview():
    assert parse_json(b'{"a": 1}') == {"a": 1}
    with pytest.raises(DecodeError):
        parse_json("{oops")
    assert preview("x" * 300, limit=10) == "x" * 10 + "..."
    assert preview(b"short") == "short"


class TestJSONProtocol:
    def test_subscribe_message(self):
        protocol = JSONStreamProtocol()
        message = json.loads(protocol.subscribe_message(Subscription.make("ticker", BTC_USD, AssetClass.SPOT), 9))
        assert message == {
            "id": 9,
            "method": "subscribe",
            "params": {"asset": "spot", "channel": "ticker", "pair": "BTC-USD"},
        }

    def test_messages_without_ids(self):
        protocol = JSONStreamProtocol(uses_message_ids=False)
        message = json.loads(protocol.unsubscribe_message(Subscription.make("orders"), 9))
        assert "id" not in message
        assert message["params"] == {"channel": "orders"}

    def test_decode_responses_and_heartbeats(self):
        protocol = JSONStreamProtocol()
        assert protocol.decode('{"method": "pong"}') == [HeartbeatFrame()]
        assert protocol.decode('{"id": 3, "result": true}') == [ResponseFrame(id=3, payload=True)]
        (frame,) = protocol.decode('{"id": 4, "error": {"code": 1}}')
        assert frame.id == 4
        assert frame.error == "{'code': 1}"

    def test_unknown_message_is_unhandled(self):
        (frame,) = JSONStreamProtocol().decode('{"e": "kline"}')
        assert isinstance(frame, UnhandledFrame)

    def test_acknowledged_methods(self):
        protocol = JSONStreamProtocol()
        assert protocol.expects_response("subscribe")
        assert not protocol.expects_response("ping")
        assert protocol.auth_message(1) is None
