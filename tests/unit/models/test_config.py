"""Unit tests for the legacy-compatible configuration models."""

from decimal import Decimal

import pytest

from fakes import engine_document
from laakhay.engine.config import (
    DEFAULT_HTTP_TIMEOUT,
    EngineConfig,
    ExchangeConfig,
    OrderManagerConfig,
)
from laakhay.engine.core.enums import AssetClass
from laakhay.engine.core.exceptions import InvalidExchangeError
from laakhay.engine.models.currency import PairFormat, new_pair


def test_engine_config_reads_legacy_fields():
    config = EngineConfig.from_dict(engine_document(httpTimeout=5_000_000_000))

    exchange = config.get_exchange("FAKEX")
    assert exchange.enabled
    assert exchange.http_timeout_seconds == 5.0
    assert exchange.api.authenticated_support
    assert exchange.has_credentials
    spot = exchange.currency_pairs.pairs[AssetClass.SPOT]
    assert spot.available == ["BTC-USD", "ETH-USD"]
    assert spot.enabled_pairs(PairFormat(delimiter="-")) == [new_pair("BTC", "USD")]
    assert config.bank_accounts[0].id == "bank-1"


def test_zero_durations_fall_back_to_defaults():
    exchange = ExchangeConfig.model_validate({"name": "fakex", "httpTimeout": 0})
    assert exchange.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert exchange.http_timeout_seconds == 15.0
    assert exchange.websocket_response_check_timeout_seconds == pytest.approx(0.03)
    assert exchange.websocket_orderbook_buffer_limit == 5


def test_to_dict_keeps_legacy_aliases():
    document = engine_document()
    config = EngineConfig.from_dict(document)
    dumped = config.to_dict()

    exchange = dumped["exchanges"][0]
    assert exchange["httpTimeout"] == DEFAULT_HTTP_TIMEOUT
    assert exchange["currencyPairs"]["pairs"]["spot"]["available"] == "BTC-USD,ETH-USD"
    assert exchange["api"]["credentials"]["key"] == "key"
    assert dumped["bankAccounts"][0]["bankName"] == "Test Bank"
    assert EngineConfig.from_dict(dumped).to_dict() == dumped


def test_unknown_exchange_lookup():
    config = EngineConfig.from_dict(engine_document())
    with pytest.raises(InvalidExchangeError):
        config.get_exchange("nope")


def test_enabled_exchanges():
    document = engine_document()
    document["exchanges"].append({"name": "other", "enabled": False})
    config = EngineConfig.from_dict(document)
    assert [e.name for e in config.enabled_exchanges()] == ["fakex"]


def test_order_manager_section():
    config = OrderManagerConfig.model_validate(
        {
            "enforceLimitConfig": True,
            "allowMarketOrders": False,
            "limitAmount": "0.5",
            "allowedPairs": ["BTC-USD", "ETH/USD"],
            "allowedExchanges": ["fakex"],
        }
    )
    assert config.limit_amount == Decimal("0.5")
    assert config.allowed_pair_set() == {new_pair("BTC", "USD"), new_pair("ETH", "USD")}
    assert not config.allow_market_orders
