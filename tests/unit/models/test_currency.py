"""Unit tests for currency codes, pairs and pair formats."""

import pytest

from laakhay.engine.core.exceptions import InvalidPairError
from laakhay.engine.models.currency import (
    Code,
    Pair,
    PairFormat,
    contains_pair,
    dedupe_pairs,
    new_pair,
    pair_from_string,
    parse_pair,
    parse_pair_format,
    parse_pair_with_index,
)


def test_code_is_normalized():
    """Codes are stripped and uppercased."""
    assert Code(" btc ") == "BTC"
    assert Code("").is_empty


def test_pair_identity_ignores_delimiter():
    """Delimiter only affects rendering."""
    assert new_pair("btc", "usd", "-") == new_pair("BTC", "USD", "/")
    assert hash(new_pair("BTC", "USD", "-")) == hash(new_pair("BTC", "USD"))
    assert str(new_pair("BTC", "USD", "-")) == "BTC-USD"


def test_pair_rejects_empty_or_identical_codes():
    with pytest.raises(InvalidPairError):
        new_pair("", "USD")
    with pytest.raises(InvalidPairError):
        new_pair("BTC", "btc")


def test_pair_format_lowercase():
    pair = new_pair("BTC", "USDT")
    assert pair.format(PairFormat(uppercase=False, delimiter="_")) == "btc_usdt"
    assert pair.format(PairFormat()) == "BTCUSDT"


@pytest.mark.parametrize(
    "fmt",
    [
        PairFormat(delimiter="-"),
        PairFormat(delimiter="_", uppercase=False),
        PairFormat(delimiter="/"),
        PairFormat(index="USD"),
    ],
)
def test_format_then_parse_returns_pair(fmt):
    """Parsing a formatted pair with the same format yields the pair."""
    pair = new_pair("BTC", "USD")
    assert parse_pair_format(pair.format(fmt), fmt) == pair


def test_parse_pair_keeps_remainder_in_quote():
    pair = parse_pair("BTC-USD-PERP", "-")
    assert pair.base == "BTC"
    assert pair.quote == "USD-PERP"


def test_parse_pair_errors():
    with pytest.raises(InvalidPairError):
        parse_pair("BTCUSD", "-")
    with pytest.raises(InvalidPairError):
        parse_pair("BTC-USD", "")


def test_parse_pair_with_index_prefix_and_suffix():
    assert parse_pair_with_index("btcusd", "USD") == new_pair("BTC", "USD")
    assert parse_pair_with_index("USDBTC", "USD") == new_pair("USD", "BTC")
    with pytest.raises(InvalidPairError, match="not found"):
        parse_pair_with_index("ETHBTC", "USD")


def test_pair_from_string_detects_delimiter():
    assert pair_from_string("eth_btc") == new_pair("ETH", "BTC")
    assert pair_from_string("BTCUSD") == new_pair("BTC", "USD")
    with pytest.raises(InvalidPairError):
        pair_from_string("DOGEUSDT")


def test_contains_and_dedupe():
    btc_usd = new_pair("BTC", "USD")
    pairs = [btc_usd, new_pair("ETH", "USD"), new_pair("BTC", "USD", "-")]
    assert dedupe_pairs(pairs) == [btc_usd, new_pair("ETH", "USD")]
    assert contains_pair(pairs, btc_usd)
    assert not contains_pair(pairs, btc_usd.swap())
    assert contains_pair(pairs, btc_usd.swap(), exact=False)


def test_pair_validates_inside_models():
    """Pydantic fields accept pair strings."""
    from laakhay.engine.models.ticker import Ticker

    ticker = Ticker(venue="fakex", pair="BTC-USD", asset="spot")
    assert isinstance(ticker.pair, Pair)
    assert ticker.pair == new_pair("BTC", "USD")
