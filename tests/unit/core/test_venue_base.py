"""Unit tests for VenueBase: cache-through reads, gating, candles and streaming."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from fakes import (
    BTC_USD,
    ETH_USD,
    FAST_STREAM,
    FakeDialer,
    FakeTransport,
    FakeVenue,
    engine_document,
    eventually,
    fake_venue,
    json_response,
)
from laakhay.engine.config import EngineConfig
from laakhay.engine.core.capabilities import Capability, Features
from laakhay.engine.core.enums import AssetClass, ConnectionState, Interval, OrderSide, OrderType, WithdrawType
from laakhay.engine.core.exceptions import (
    AuthRejectedError,
    AuthRequiredError,
    InvalidAssetError,
    NotYetImplementedError,
    UnsupportedError,
    ValidationError,
    WSClosedError,
)
from laakhay.engine.core.base import Venue, VenueBase
from laakhay.engine.models.order import OrderModify, OrderSubmit
from laakhay.engine.models.withdraw import FiatWithdrawDetails, WithdrawRequest
from laakhay.engine.runtime.registry import StartBarrier
from laakhay.engine.runtime.requester import Credentials, Request

SPOT = AssetClass.SPOT
T0 = datetime(2024, 1, 1, tzinfo=UTC)


class LimitedVenue(FakeVenue):
    name = "limitedx"
    features = Features(capabilities=Capability.TICKER_FETCHING)


class RejectingVenue(FakeVenue):
    name = "rejectx"

    async def get_order_info(self, order_id, pair=None, asset=AssetClass.SPOT):
        raise AuthRejectedError("invalid api key")


def _order() -> OrderSubmit:
    return OrderSubmit(
        venue="fakex", pair=BTC_USD, side=OrderSide.BUY, type=OrderType.LIMIT, price=Decimal("100"), amount=Decimal("1")
    )


def test_venue_satisfies_protocol(venue):
    assert isinstance(venue, Venue)


def test_venue_requires_name():
    class Nameless(VenueBase):
        pass

    with pytest.raises(ValueError, match="venue name"):
        Nameless()


class TestMarketData:
    @pytest.mark.asyncio
    async def test_fetch_ticker_reads_through_cache(self, venue):
        first = await venue.fetch_ticker(BTC_USD, SPOT)
        venue.last = Decimal("200")
        second = await venue.fetch_ticker(BTC_USD, SPOT)

        assert venue.calls["ticker"] == 1
        assert second.last == first.last == Decimal("100")
        assert first.last_updated is not None

        updated = await venue.update_ticker(BTC_USD, SPOT)
        assert updated.last == Decimal("200")
        assert venue.calls["ticker"] == 2
        assert (await venue.fetch_ticker(BTC_USD, SPOT)).last == Decimal("200")

    @pytest.mark.asyncio
    async def test_fetch_orderbook_reads_through_cache(self, venue):
        book = await venue.fetch_orderbook(BTC_USD, SPOT)
        await venue.fetch_orderbook(BTC_USD, SPOT)
        assert venue.calls["orderbook"] == 1
        assert book.best_ask.price == Decimal("101")
        assert book.best_bid.price == Decimal("99")

    @pytest.mark.asyncio
    async def test_unsupported_asset(self, venue):
        with pytest.raises(InvalidAssetError, match="unsupported"):
            await venue.fetch_ticker(BTC_USD, AssetClass.MARGIN)

    @pytest.mark.asyncio
    async def test_missing_capability(self):
        venue = LimitedVenue()
        with pytest.raises(UnsupportedError, match="orderbook_fetching unsupported by limitedx"):
            await venue.fetch_orderbook(BTC_USD, SPOT)
        assert venue.calls["orderbook"] == 0


class TestCandles:
    @pytest.mark.asyncio
    async def test_historic_candles_sorted_ascending(self, venue):
        series = await venue.historic_candles(BTC_USD, SPOT, T0, T0 + timedelta(minutes=5), Interval.M1)
        times = [c.time for c in series.candles]
        assert times == sorted(times)
        assert len(series) == 5

    @pytest.mark.asyncio
    async def test_historic_candles_over_limit(self, venue):
        with pytest.raises(ValidationError, match="historic_candles_extended"):
            await venue.historic_candles(BTC_USD, SPOT, T0, T0 + timedelta(minutes=101), Interval.M1)
        assert venue.calls["candles"] == 0

    @pytest.mark.asyncio
    async def test_extended_splits_and_merges(self, venue):
        end = T0 + timedelta(minutes=250)
        series = await venue.historic_candles_extended(BTC_USD, SPOT, T0, end, Interval.M1)

        assert venue.calls["candles"] == 3
        assert len(series) == 250
        assert series.candles[0].time == T0
        assert series.candles[-1].time == end - timedelta(minutes=1)
        assert series.is_contiguous()

    @pytest.mark.asyncio
    async def test_unsupported_interval(self, venue):
        with pytest.raises(UnsupportedError, match="oneday interval unsupported by exchange"):
            await venue.historic_candles(BTC_USD, SPOT, T0, T0 + timedelta(days=3), Interval.D1)

    @pytest.mark.asyncio
    async def test_inverted_range(self, venue):
        with pytest.raises(ValidationError, match="precedes"):
            await venue.historic_candles_extended(BTC_USD, SPOT, T0, T0 - timedelta(hours=1), Interval.H1)


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_gated_call_without_credentials(self, venue):
        with pytest.raises(AuthRequiredError):
            await venue.submit_order(_order())
        assert venue.calls["submit"] == 0

    @pytest.mark.asyncio
    async def test_account_requires_credentials(self, venue, authed_venue):
        with pytest.raises(AuthRequiredError):
            await venue.fetch_account()

        holdings = await authed_venue.fetch_account()
        await authed_venue.fetch_account()
        assert holdings.total("BTC") == Decimal("2")
        assert authed_venue.calls["account"] == 1

    @pytest.mark.asyncio
    async def test_rejection_fails_fast_until_validated(self):
        rejecting = RejectingVenue()
        rejecting.set_enabled(True)
        rejecting.set_credentials(Credentials(key="key", secret="secret"))

        with pytest.raises(AuthRejectedError, match="invalid api key"):
            await rejecting.get_order_info("1")
        assert rejecting.auth_failed
        assert not rejecting.allow_authenticated_request()

        with pytest.raises(AuthRejectedError, match="validate credentials"):
            await rejecting.submit_order(_order())
        assert rejecting.calls["submit"] == 0

        await rejecting.validate_credentials()
        assert rejecting.allow_authenticated_request()
        assert (await rejecting.submit_order(_order())).placed
        assert rejecting.calls["account"] == 1

    @pytest.mark.asyncio
    async def test_credential_rotation_clears_failure(self, authed_venue):
        authed_venue.record_auth_failure()
        assert not authed_venue.allow_authenticated_request()
        authed_venue.set_credentials(Credentials(key="new", secret="secret"))
        assert authed_venue.allow_authenticated_request()

    @pytest.mark.asyncio
    async def test_unimplemented_operation(self, authed_venue):
        with pytest.raises(NotYetImplementedError, match="modify order"):
            await authed_venue.modify_order(OrderModify(order_id="1"))

    @pytest.mark.asyncio
    async def test_international_fiat_gate(self, authed_venue):
        request = WithdrawRequest(
            currency="USD",
            amount=Decimal("10"),
            type=WithdrawType.FIAT_INTERNATIONAL,
            fiat=FiatWithdrawDetails(bank_account_id="bank-1"),
        )
        with pytest.raises(UnsupportedError, match="international fiat"):
            await authed_venue.withdraw_fiat_international(request)

    @pytest.mark.asyncio
    async def test_requests_are_signed_with_venue_credentials(self):
        transport = FakeTransport(json_response({"ok": True}))
        venue = fake_venue(authenticated=True, transport=transport)
        await venue.requester.send(Request("GET", "/account", auth_required=True))
        (sent,) = transport.requests
        assert sent.url == "https://api.fakex.test/account"
        assert sent.headers["X-KEY"] == "key"


class TestPairs:
    @pytest.mark.asyncio
    async def test_update_tradable_pairs_prunes_enabled(self, venue):
        venue.listed = [ETH_USD]
        changes = await venue.update_tradable_pairs(force=True)

        assert changes[SPOT].removed == (BTC_USD,)
        assert venue.get_available_pairs(SPOT) == [ETH_USD]
        assert venue.get_enabled_pairs(SPOT) == []

    @pytest.mark.asyncio
    async def test_recent_update_is_skipped_without_force(self, venue):
        await venue.update_tradable_pairs(force=True)
        calls = venue.calls["pairs"]
        assert await venue.update_tradable_pairs() == {}
        assert venue.calls["pairs"] == calls

    def test_format_pair_uses_request_format(self, venue):
        assert venue.format_pair(BTC_USD, SPOT) == "BTCUSD"

    def test_default_config(self, venue):
        config = venue.default_config()
        assert config.name == "fakex"
        assert config.features.enabled.websocket
        assert set(config.currency_pairs.pairs) == {AssetClass.SPOT, AssetClass.FUTURES}

    def test_apply_config_keeps_other_transport_settings(self):
        venue = FakeVenue(transport_config=replace(FAST_STREAM, channel_capacity=7, decode_failure_threshold=9))
        document = engine_document(
            websocketTrafficTimeout=2_000_000_000,
            websocketResponseMaxLimit=3_000_000_000,
            websocketResponseCheckTimeout=50_000_000,
        )
        venue.apply_config(EngineConfig.from_dict(document).exchanges[0])

        transport = venue.transport_config
        assert transport.traffic_timeout == 2.0
        assert transport.response_timeout == 3.0
        assert transport.response_check_interval == 0.05
        assert transport.channel_capacity == 7
        assert transport.decode_failure_threshold == 9
        assert transport.ping_interval is None


class TestStreaming:
    @pytest.mark.asyncio
    async def test_ws_connect_subscribes_defaults(self):
        dialer = FakeDialer()
        venue = fake_venue(dialer=dialer, transport_config=FAST_STREAM)

        await venue.ws_connect()

        channels = [body["params"]["channel"] for body in dialer.current.methods("subscribe")]
        assert channels == ["ticker", "orderbook", "trades"]
        assert venue.websocket_state is ConnectionState.SUBSCRIBED
        assert await venue.ws_subscribe(venue.generate_default_subscriptions()) == 0
        await venue.shutdown()
        assert venue.websocket_state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_ws_subscribe_before_connect(self, venue):
        with pytest.raises(WSClosedError):
            await venue.ws_subscribe([])

    @pytest.mark.asyncio
    async def test_start_releases_barrier_and_streams(self):
        dialer = FakeDialer()
        venue = fake_venue(dialer=dialer, transport_config=FAST_STREAM)
        venue.websocket_enabled = True
        barrier = StartBarrier(["fakex"])

        await venue.start(barrier)

        assert await barrier.wait(timeout=0.1)
        await eventually(lambda: venue.websocket_state is ConnectionState.SUBSCRIBED)
        await venue.shutdown()
