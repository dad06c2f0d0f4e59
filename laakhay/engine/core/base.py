"""Venue contract and shared venue state.

Architecture:
    ``Venue`` is the structural contract every integration satisfies.
    ``VenueBase`` is the shared-state base a concrete integration extends:
    it owns the pair manager, rate limiter, requester, credentials and the
    optional websocket connection, and implements the generic parts of the
    contract on top of a handful of ``load_*`` hooks:

    - fetch_* / update_*: cache-through over ``load_ticker``,
      ``load_orderbook`` and ``load_account``
    - historic candles over ``load_candles``, split into ranges when the
      venue caps the result count
    - tradable pair discovery over ``load_tradable_pairs``

    Trading and funding operations are overridden directly by integrations.
    Every override listed in ``_GATES`` is wrapped on class creation so that
    it checks the capability bit and, for credential-bearing operations,
    ``allow_authenticated_request`` before the venue is touched.

Design Decisions:
    - Venues never own caches: they write through the CacheFacade handed to
      them at construction and refer to nothing else in the engine
    - An AuthRejectedError from any gated call records an auth failure;
      further authenticated calls fail fast until ``validate_credentials``
    - Unimplemented hooks raise NotYetImplementedError; undeclared
      capabilities raise UnsupportedError before any hook runs
    - Credentials are swapped under a lock so rotation is atomic

See Also:
    - runtime.registry: Builds, configures and starts venues
    - cache: Ticker, orderbook and account caches
    - stream.connection: Websocket connection owned by a venue
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from ..cache import BufferConfig, CacheFacade
from ..config import (
    AssetPairsConfig,
    CurrencyPairsConfig,
    ExchangeConfig,
    FeaturesConfig,
    FeaturesEnabledConfig,
    PairFormatConfig,
)
from ..kline.aggregate import dedupe_candles, sort_candles
from ..kline.intervals import candles_per_span, split_date_range
from ..models.account import Holdings
from ..models.currency import Code, Pair, PairFormat
from ..models.funding import FeeBuilder, FundHistory
from ..models.kline import Candle, KlineSeries
from ..models.order import (
    CancelAllResponse,
    GetOrdersRequest,
    OrderCancel,
    OrderDetail,
    OrderModify,
    OrderSubmit,
    SubmitResponse,
)
from ..models.orderbook import OrderBook
from ..models.pair_store import PairDifference, PairManager, PairStore
from ..models.ticker import Ticker
from ..models.withdraw import VenueWithdrawResponse, WithdrawRequest
from ..runtime.limiter import RateLimitConfig, RateLimiter
from ..runtime.requester import Credentials, HTTPTransport, PreparedRequest, Requester
from ..stream.connection import WebsocketConnection
from ..stream.frames import StreamProtocol
from ..stream.ledger import Subscription
from ..stream.router import OrderSink, StreamRouter
from ..stream.transport import Dialer, TransportConfig
from .capabilities import Capability, Features
from .enums import AssetClass, ConnectionState, Interval, PairsState
from .exceptions import (
    AuthRejectedError,
    AuthRequiredError,
    EngineError,
    InvalidAssetError,
    NotFoundError,
    NotYetImplementedError,
    UnsupportedError,
    ValidationError,
    WSClosedError,
)

if TYPE_CHECKING:
    from ..runtime.registry import StartBarrier

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE = 5.0


@runtime_checkable
class Venue(Protocol):
    """Capability set of one venue integration."""

    name: str
    features: Features

    # Identification
    def is_enabled(self) -> bool: ...

    def set_enabled(self, enabled: bool) -> None: ...

    def allow_authenticated_request(self) -> bool: ...

    # Configuration
    def apply_config(self, config: ExchangeConfig) -> None: ...

    def default_config(self) -> ExchangeConfig: ...

    # Lifecycle
    async def start(self, barrier: StartBarrier | None = None) -> None: ...

    async def shutdown(self) -> None: ...

    # Discovery
    async def fetch_tradable_pairs(self, asset: AssetClass) -> list[Pair]: ...

    async def update_tradable_pairs(self, force: bool = False) -> dict[AssetClass, PairDifference]: ...

    # Market data
    async def fetch_ticker(self, pair: Pair, asset: AssetClass) -> Ticker: ...

    async def update_ticker(self, pair: Pair, asset: AssetClass) -> Ticker: ...

    async def fetch_orderbook(self, pair: Pair, asset: AssetClass) -> OrderBook: ...

    async def update_orderbook(self, pair: Pair, asset: AssetClass) -> OrderBook: ...

    async def historic_candles(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> KlineSeries: ...

    async def historic_candles_extended(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> KlineSeries: ...

    # Account
    async def fetch_account(self) -> Holdings: ...

    async def update_account(self) -> Holdings: ...

    async def validate_credentials(self) -> None: ...

    # Trading
    async def submit_order(self, order: OrderSubmit) -> SubmitResponse: ...

    async def modify_order(self, order: OrderModify) -> OrderDetail: ...

    async def cancel_order(self, order: OrderCancel) -> None: ...

    async def cancel_all_orders(self, order: OrderCancel) -> CancelAllResponse: ...

    async def get_order_info(
        self, order_id: str, pair: Pair | None = None, asset: AssetClass = AssetClass.SPOT
    ) -> OrderDetail: ...

    async def get_active_orders(self, request: GetOrdersRequest) -> list[OrderDetail]: ...

    async def get_order_history(self, request: GetOrdersRequest) -> list[OrderDetail]: ...

    # Funding
    async def get_deposit_address(self, currency: Code, account_id: str = "", chain: str = "") -> str: ...

    async def withdraw_crypto(self, request: WithdrawRequest) -> VenueWithdrawResponse: ...

    async def withdraw_fiat(self, request: WithdrawRequest) -> VenueWithdrawResponse: ...

    async def withdraw_fiat_international(self, request: WithdrawRequest) -> VenueWithdrawResponse: ...

    async def get_funding_history(self) -> list[FundHistory]: ...

    async def get_fee_by_type(self, builder: FeeBuilder) -> Decimal: ...

    # Streaming
    async def ws_connect(self) -> None: ...

    async def ws_subscribe(self, subscriptions: Iterable[Subscription]) -> int: ...

    async def ws_unsubscribe(self, subscriptions: Iterable[Subscription]) -> int: ...

    def generate_default_subscriptions(self) -> list[Subscription]: ...

    async def authenticate_websocket(self) -> None: ...


@dataclass(frozen=True)
class _Gate:
    capability: Capability
    auth: bool = False
    international: bool = False


_GATES: dict[str, _Gate] = {
    "submit_order": _Gate(Capability.SUBMIT_ORDER, auth=True),
    "modify_order": _Gate(Capability.MODIFY_ORDER, auth=True),
    "cancel_order": _Gate(Capability.CANCEL_ORDER, auth=True),
    "cancel_all_orders": _Gate(Capability.CANCEL_ORDERS, auth=True),
    "get_order_info": _Gate(Capability.GET_ORDER, auth=True),
    "get_active_orders": _Gate(Capability.GET_ORDERS, auth=True),
    "get_order_history": _Gate(Capability.GET_ORDERS, auth=True),
    "get_deposit_address": _Gate(Capability.DEPOSIT_ADDRESS, auth=True),
    "withdraw_crypto": _Gate(Capability.CRYPTO_WITHDRAWAL, auth=True),
    "withdraw_fiat": _Gate(Capability.FIAT_WITHDRAWAL, auth=True),
    "withdraw_fiat_international": _Gate(
        Capability.FIAT_WITHDRAWAL, auth=True, international=True
    ),
    "get_funding_history": _Gate(Capability.FUNDING_HISTORY, auth=True),
    "get_fee_by_type": _Gate(Capability.TRADE_FEE),
}


def gated(gate: _Gate) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Wrap a venue coroutine with its capability and credential checks."""

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(self: VenueBase, *args: Any, **kwargs: Any) -> Any:
            self.features.require(gate.capability, venue=self.name)
            if gate.international and not self.features.international_fiat:
                raise UnsupportedError(
                    f"international fiat withdrawal unsupported by {self.name}",
                    venue=self.name,
                    capability=gate.capability,
                )
            if gate.auth:
                self.ensure_authenticated()
            try:
                return await func(self, *args, **kwargs)
            except AuthRejectedError:
                self.record_auth_failure()
                raise

        wrapper.__gated__ = True  # type: ignore[attr-defined]
        return wrapper

    return decorator


class VenueBase:
    """Shared state and generic behaviour of a venue integration.

    Subclasses set the class attributes and implement the ``load_*`` hooks
    and whichever trading, funding and streaming operations they support.
    """

    name: ClassVar[str] = ""
    base_url: ClassVar[str] = ""
    websocket_url: ClassVar[str] = ""
    features: ClassVar[Features] = Features()
    assets: ClassVar[tuple[AssetClass, ...]] = (AssetClass.SPOT,)
    request_format: ClassVar[PairFormat] = PairFormat()
    config_format: ClassVar[PairFormat] = PairFormat(delimiter="-")
    sort_orderbook_buffer: ClassVar[bool] = False
    pair_update_interval: ClassVar[float] = 3600.0

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for attr, gate in _GATES.items():
            method = cls.__dict__.get(attr)
            if method is not None and not getattr(method, "__gated__", False):
                setattr(cls, attr, gated(gate)(method))

    def __init__(
        self,
        caches: CacheFacade | None = None,
        *,
        transport: HTTPTransport | None = None,
        dialer: Dialer | None = None,
        transport_config: TransportConfig | None = None,
    ) -> None:
        if not self.name:
            raise ValueError(f"{type(self).__name__} must define a venue name")
        self.caches = caches or CacheFacade()
        self.enabled = False
        self.verbose = False
        self.config: ExchangeConfig | None = None
        self.authenticated_support = False
        self.websocket_enabled = False
        self.websocket_auth = False
        self.order_sink: OrderSink | None = None
        self.last_error: str | None = None

        self.pairs = PairManager(
            request_format=self.request_format, config_format=self.config_format
        )
        for asset in self.assets:
            self.pairs.add_store(PairStore(asset=asset, asset_enabled=PairsState.ENABLED))
        self.limiter = RateLimiter(self.name, self.rate_limit_config())

        self._credentials = Credentials()
        self._credentials_lock = threading.Lock()
        self._auth_failed = False

        self.requester = Requester(
            self.name,
            self.base_url,
            transport=transport,
            limiter=self.limiter,
            auth=self.sign,
            credentials=self.get_credentials,
            error_check=self.check_error,
        )
        self.dialer = dialer
        self.transport_config = transport_config or TransportConfig()
        self.websocket: WebsocketConnection | None = None
        self._tasks: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, enabled={self.enabled})"

    # Identification

    def is_enabled(self) -> bool:
        return self.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    # Hooks

    def rate_limit_config(self) -> RateLimitConfig:
        """Rate limit rules of the venue. Override to declare endpoint classes."""
        return RateLimitConfig()

    def sign(self, request: PreparedRequest, credentials: Credentials) -> PreparedRequest:
        """Authenticate an outbound request."""
        raise NotYetImplementedError("request signing", self.name)

    def check_error(self, payload: Any) -> EngineError | None:
        """Map an in-body venue error to an exception; None when the body is fine."""
        return None

    async def setup(self) -> None:
        """One-off start work; must not block beyond initial setup."""

    async def load_tradable_pairs(self, asset: AssetClass) -> list[Pair]:
        raise NotYetImplementedError("fetch tradable pairs", self.name)

    async def load_ticker(self, pair: Pair, asset: AssetClass) -> Ticker:
        raise NotYetImplementedError("update ticker", self.name)

    async def load_orderbook(self, pair: Pair, asset: AssetClass) -> OrderBook:
        raise NotYetImplementedError("update orderbook", self.name)

    async def load_account(self) -> Holdings:
        raise NotYetImplementedError("update account info", self.name)

    async def load_candles(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> list[Candle]:
        raise NotYetImplementedError("historic candles", self.name)

    def create_stream_protocol(self) -> StreamProtocol:
        raise NotYetImplementedError("websocket protocol", self.name)

    # Configuration

    def apply_config(self, config: ExchangeConfig) -> None:
        """Load settings, credentials and pair stores from configuration."""
        self.config = config
        self.enabled = config.enabled
        self.verbose = config.verbose
        self.requester.timeout = config.http_timeout_seconds
        self.requester.verbose = config.verbose

        creds = config.api.credentials
        self.set_credentials(
            Credentials(
                key=creds.key,
                secret=creds.secret,
                client_id=creds.client_id,
                otp_secret=creds.otp_secret,
                pem_key=creds.pem_key,
            )
        )
        self.authenticated_support = config.api.authenticated_support and config.has_credentials
        self.websocket_enabled = config.features.enabled.websocket
        self.websocket_auth = config.api.authenticated_websocket_support and config.has_credentials

        pairs_config = config.currency_pairs
        manager = PairManager(
            request_format=pairs_config.request_format.to_format(),
            config_format=pairs_config.config_format.to_format(),
        )
        for asset in self.assets:
            asset_config = pairs_config.pairs.get(asset)
            if asset_config is None:
                manager.add_store(PairStore(asset=asset, asset_enabled=PairsState.ENABLED))
                continue
            config_format = (
                asset_config.config_format.to_format()
                if asset_config.config_format
                else manager.config_format
            )
            manager.add_store(
                PairStore(
                    asset=asset,
                    available=asset_config.available_pairs(config_format),
                    enabled=asset_config.enabled_pairs(config_format),
                    request_format=(
                        asset_config.request_format.to_format()
                        if asset_config.request_format
                        else None
                    ),
                    config_format=config_format,
                    asset_enabled=PairsState.from_bool(asset_config.asset_enabled),
                )
            )
        self.pairs = manager

        self.caches.orderbooks.configure(
            self.name,
            BufferConfig(
                capacity=config.websocket_orderbook_buffer_limit,
                sort_buffer=self.sort_orderbook_buffer,
            ),
        )
        self.transport_config = replace(
            self.transport_config,
            traffic_timeout=config.websocket_traffic_timeout_seconds,
            response_timeout=config.websocket_response_max_limit_seconds,
            response_check_interval=config.websocket_response_check_timeout_seconds,
        )
        logger.debug(
            "Applied exchange config",
            extra={"venue": self.name, "enabled": self.enabled, "assets": len(pairs_config.pairs)},
        )

    def default_config(self) -> ExchangeConfig:
        """Configuration a fresh install would write for this venue."""
        request_format = self.request_format
        config_format = self.config_format
        return ExchangeConfig(
            name=self.name,
            enabled=True,
            currency_pairs=CurrencyPairsConfig(
                request_format=PairFormatConfig(
                    uppercase=request_format.uppercase,
                    delimiter=request_format.delimiter,
                    index=request_format.index,
                ),
                config_format=PairFormatConfig(
                    uppercase=config_format.uppercase,
                    delimiter=config_format.delimiter,
                    index=config_format.index,
                ),
                pairs={asset: AssetPairsConfig(asset_enabled=True) for asset in self.assets},
            ),
            features=FeaturesConfig(
                enabled=FeaturesEnabledConfig(
                    auto_pair_updates=True,
                    websocket=self.features.supports(Capability.WEBSOCKET),
                )
            ),
        )

    # Credentials

    def get_credentials(self) -> Credentials:
        with self._credentials_lock:
            return self._credentials

    def set_credentials(self, credentials: Credentials) -> None:
        """Swap credentials atomically and clear any recorded auth failure."""
        with self._credentials_lock:
            self._credentials = credentials
            self._auth_failed = False
        self.authenticated_support = credentials.is_set

    def record_auth_failure(self) -> None:
        with self._credentials_lock:
            self._auth_failed = True
        logger.warning("Credentials rejected, authenticated requests disabled", extra={"venue": self.name})

    @property
    def auth_failed(self) -> bool:
        with self._credentials_lock:
            return self._auth_failed

    def allow_authenticated_request(self) -> bool:
        """True when credentials are configured and have not been rejected."""
        with self._credentials_lock:
            return (
                self.authenticated_support
                and self._credentials.is_set
                and not self._auth_failed
            )

    def ensure_authenticated(self) -> None:
        if self.allow_authenticated_request():
            return
        if self.auth_failed:
            raise AuthRejectedError(
                f"{self.name} credentials were rejected; validate credentials before retrying"
            )
        raise AuthRequiredError(f"{self.name} authenticated requests are not enabled")

    async def validate_credentials(self) -> None:
        """Re-check credentials against the venue by refreshing the account."""
        with self._credentials_lock:
            if not self._credentials.is_set:
                raise AuthRequiredError(f"{self.name} has no credentials configured")
            self._auth_failed = False
        await self.update_account()

    # Pairs

    def check_asset(self, asset: AssetClass) -> None:
        if not self.pairs.supports_asset(asset):
            raise InvalidAssetError(f"asset class {asset} unsupported by {self.name}")
        if not self.pairs.is_asset_enabled(asset):
            raise InvalidAssetError(f"asset class {asset} disabled for {self.name}")

    def get_asset_types(self, enabled_only: bool = False) -> list[AssetClass]:
        return self.pairs.get_asset_types(enabled_only=enabled_only)

    def get_enabled_pairs(self, asset: AssetClass) -> list[Pair]:
        return self.pairs.get_enabled_pairs(asset)

    def get_available_pairs(self, asset: AssetClass) -> list[Pair]:
        return self.pairs.get_available_pairs(asset)

    def format_pair(self, pair: Pair, asset: AssetClass) -> str:
        """Pair in the venue's request format."""
        return pair.format(self.pairs.get_request_format(asset))

    async def fetch_tradable_pairs(self, asset: AssetClass) -> list[Pair]:
        self.check_asset(asset)
        return await self.load_tradable_pairs(asset)

    async def update_tradable_pairs(self, force: bool = False) -> dict[AssetClass, PairDifference]:
        """Refresh available pairs of every enabled asset class.

        Without ``force`` the refresh is skipped while the last one is
        younger than ``pair_update_interval``.
        """
        last = self.pairs.last_pairs_update
        if not force and last is not None:
            age = (datetime.now(last.tzinfo) - last).total_seconds()
            if age < self.pair_update_interval:
                return {}
        changes: dict[AssetClass, PairDifference] = {}
        for asset in self.pairs.get_asset_types(enabled_only=True):
            pairs = await self.load_tradable_pairs(asset)
            diff = self.pairs.update_pairs(pairs, asset)
            changes[asset] = diff
            if diff.changed:
                logger.info(
                    "Tradable pairs updated",
                    extra={
                        "venue": self.name,
                        "asset": str(asset),
                        "added": len(diff.added),
                        "removed": len(diff.removed),
                    },
                )
        return changes

    # Market data

    async def fetch_ticker(self, pair: Pair, asset: AssetClass = AssetClass.SPOT) -> Ticker:
        """Cached ticker, or a fresh one when the cache has none."""
        self.features.require(Capability.TICKER_FETCHING, venue=self.name)
        try:
            return self.caches.tickers.get(self.name, pair, asset)
        except NotFoundError:
            return await self.update_ticker(pair, asset)

    async def update_ticker(self, pair: Pair, asset: AssetClass = AssetClass.SPOT) -> Ticker:
        self.features.require(Capability.TICKER_FETCHING, venue=self.name)
        self.check_asset(asset)
        ticker = await self.load_ticker(pair, asset)
        return self.caches.tickers.process(ticker)

    async def fetch_orderbook(self, pair: Pair, asset: AssetClass = AssetClass.SPOT) -> OrderBook:
        self.features.require(Capability.ORDERBOOK_FETCHING, venue=self.name)
        try:
            return self.caches.orderbooks.get(self.name, pair, asset)
        except NotFoundError:
            return await self.update_orderbook(pair, asset)

    async def update_orderbook(self, pair: Pair, asset: AssetClass = AssetClass.SPOT) -> OrderBook:
        self.features.require(Capability.ORDERBOOK_FETCHING, venue=self.name)
        self.check_asset(asset)
        book = await self.load_orderbook(pair, asset)
        return self.caches.orderbooks.process(book)

    async def historic_candles(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> KlineSeries:
        """Candles for [start, end) in one request.

        Raises:
            ValidationError: If the span needs more candles than one request returns
        """
        self._check_kline_request(asset, start, end, interval)
        limit = self.features.kline_result_limit
        wanted = candles_per_span(start, end, interval)
        if limit and wanted > limit:
            raise ValidationError(
                f"requested {wanted} candles exceeds the {limit} candle limit of {self.name}, "
                "use historic_candles_extended"
            )
        candles = await self.load_candles(pair, asset, start, end, interval)
        return KlineSeries(
            venue=self.name, pair=pair, asset=asset, interval=interval, candles=sort_candles(candles)
        )

    async def historic_candles_extended(
        self, pair: Pair, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> KlineSeries:
        """Candles for [start, end) fetched over as many requests as needed."""
        self._check_kline_request(asset, start, end, interval)
        limit = self.features.kline_result_limit or max(candles_per_span(start, end, interval), 1)
        collected: list[Candle] = []
        for window in split_date_range(start, end, interval, limit):
            candles = await self.load_candles(pair, asset, window.start, window.end, interval)
            collected.extend(candles)
            logger.debug(
                "range_fetched",
                extra={
                    "venue": self.name,
                    "pair": str(pair),
                    "start": window.start.isoformat(),
                    "end": window.end.isoformat(),
                    "candles": len(candles),
                },
            )
        return KlineSeries(
            venue=self.name,
            pair=pair,
            asset=asset,
            interval=interval,
            candles=sort_candles(dedupe_candles(collected)),
        )

    def _check_kline_request(
        self, asset: AssetClass, start: datetime, end: datetime, interval: Interval
    ) -> None:
        self.features.require(Capability.KLINE_FETCHING, venue=self.name)
        self.check_asset(asset)
        self.features.require_interval(interval, venue=self.name)
        if end < start:
            raise ValidationError(f"candle range end {end.isoformat()} precedes start {start.isoformat()}")

    # Account

    async def fetch_account(self) -> Holdings:
        self.features.require(Capability.ACCOUNT_INFO, venue=self.name)
        try:
            return self.caches.accounts.get(self.name)
        except NotFoundError:
            return await self.update_account()

    async def update_account(self) -> Holdings:
        self.features.require(Capability.ACCOUNT_INFO, venue=self.name)
        self.ensure_authenticated()
        try:
            holdings = await self.load_account()
        except AuthRejectedError:
            self.record_auth_failure()
            raise
        return self.caches.accounts.process(holdings)

    # Trading

    @gated(_GATES["submit_order"])
    async def submit_order(self, order: OrderSubmit) -> SubmitResponse:
        raise NotYetImplementedError("submit order", self.name)

    @gated(_GATES["modify_order"])
    async def modify_order(self, order: OrderModify) -> OrderDetail:
        raise NotYetImplementedError("modify order", self.name)

    @gated(_GATES["cancel_order"])
    async def cancel_order(self, order: OrderCancel) -> None:
        raise NotYetImplementedError("cancel order", self.name)

    @gated(_GATES["cancel_all_orders"])
    async def cancel_all_orders(self, order: OrderCancel) -> CancelAllResponse:
        raise NotYetImplementedError("cancel all orders", self.name)

    @gated(_GATES["get_order_info"])
    async def get_order_info(
        self, order_id: str, pair: Pair | None = None, asset: AssetClass = AssetClass.SPOT
    ) -> OrderDetail:
        raise NotYetImplementedError("get order info", self.name)

    @gated(_GATES["get_active_orders"])
    async def get_active_orders(self, request: GetOrdersRequest) -> list[OrderDetail]:
        raise NotYetImplementedError("get active orders", self.name)

    @gated(_GATES["get_order_history"])
    async def get_order_history(self, request: GetOrdersRequest) -> list[OrderDetail]:
        raise NotYetImplementedError("get order history", self.name)

    # Funding

    @gated(_GATES["get_deposit_address"])
    async def get_deposit_address(self, currency: Code, account_id: str = "", chain: str = "") -> str:
        raise NotYetImplementedError("get deposit address", self.name)

    @gated(_GATES["withdraw_crypto"])
    async def withdraw_crypto(self, request: WithdrawRequest) -> VenueWithdrawResponse:
        raise NotYetImplementedError("withdraw crypto", self.name)

    @gated(_GATES["withdraw_fiat"])
    async def withdraw_fiat(self, request: WithdrawRequest) -> VenueWithdrawResponse:
        raise NotYetImplementedError("withdraw fiat", self.name)

    @gated(_GATES["withdraw_fiat_international"])
    async def withdraw_fiat_international(self, request: WithdrawRequest) -> VenueWithdrawResponse:
        raise NotYetImplementedError("withdraw fiat international", self.name)

    @gated(_GATES["get_funding_history"])
    async def get_funding_history(self) -> list[FundHistory]:
        raise NotYetImplementedError("get funding history", self.name)

    @gated(_GATES["get_fee_by_type"])
    async def get_fee_by_type(self, builder: FeeBuilder) -> Decimal:
        raise NotYetImplementedError("get fee by type", self.name)

    # Streaming

    @property
    def websocket_state(self) -> ConnectionState:
        if self.websocket is None:
            return ConnectionState.DISCONNECTED
        return self.websocket.state

    def websocket_connection(self) -> WebsocketConnection:
        """The venue's connection, created on first use."""
        self.features.require(Capability.WEBSOCKET, venue=self.name)
        if self.websocket is None:
            router = StreamRouter(
                self.name,
                self.caches,
                order_sink=self._route_order,
                capacity=self.transport_config.channel_capacity,
            )
            self.websocket = WebsocketConnection(
                self.name,
                self.websocket_url,
                self.create_stream_protocol(),
                router,
                dialer=self.dialer,
                config=self.transport_config,
                authenticate=self.websocket_auth and self.allow_authenticated_request(),
            )
        return self.websocket

    async def ws_connect(self) -> None:
        """Connect and subscribe to the default channels."""
        connection = self.websocket_connection()
        await connection.connect()
        await self.ws_subscribe(self.generate_default_subscriptions())

    async def ws_subscribe(self, subscriptions: Iterable[Subscription]) -> int:
        """Subscribe to each entry; returns how many were new."""
        connection = self._live_websocket()
        added = 0
        for subscription in subscriptions:
            if await connection.subscribe(subscription):
                added += 1
        return added

    async def ws_unsubscribe(self, subscriptions: Iterable[Subscription]) -> int:
        connection = self._live_websocket()
        removed = 0
        for subscription in subscriptions:
            if await connection.unsubscribe(subscription):
                removed += 1
        return removed

    def generate_default_subscriptions(self) -> list[Subscription]:
        """Channels for every enabled pair, plus private channels when authenticated."""
        channels = [
            channel
            for capability, channel in (
                (Capability.WEBSOCKET_TICKER, "ticker"),
                (Capability.WEBSOCKET_ORDERBOOK, "orderbook"),
                (Capability.WEBSOCKET_TRADES, "trades"),
            )
            if self.features.supports(capability)
        ]
        subscriptions: list[Subscription] = []
        for asset in self.pairs.get_asset_types(enabled_only=True):
            for pair in self.pairs.get_enabled_pairs(asset):
                for channel in channels:
                    subscriptions.append(Subscription.make(channel, pair, asset))
        if self.websocket is not None and self.websocket.is_authenticated:
            if self.features.supports(Capability.WEBSOCKET_ACCOUNT):
                subscriptions.append(Subscription.make("account"))
            if self.features.supports(Capability.WEBSOCKET_ORDERS):
                subscriptions.append(Subscription.make("orders"))
        return subscriptions

    async def authenticate_websocket(self) -> None:
        self.features.require(Capability.WEBSOCKET_AUTHENTICATED, venue=self.name)
        self.ensure_authenticated()
        connection = self._live_websocket()
        try:
            await connection.authenticate()
        except AuthRejectedError:
            self.record_auth_failure()
            raise

    def _live_websocket(self) -> WebsocketConnection:
        self.features.require(Capability.WEBSOCKET, venue=self.name)
        if self.websocket is None:
            raise WSClosedError(f"{self.name} websocket not connected")
        return self.websocket

    def _route_order(self, order: OrderDetail) -> None:
        if self.order_sink is not None:
            self.order_sink(order)

    # Lifecycle

    async def start(self, barrier: StartBarrier | None = None) -> None:
        """Run setup, then hand pair updates and streaming to background tasks."""
        try:
            await self.setup()
            config = self.config
            if config is not None and config.features.enabled.auto_pair_updates:
                self.spawn(self._run_pair_updates(), name=f"{self.name}-pair-updates")
            if self.websocket_enabled and self.features.supports(Capability.WEBSOCKET):
                self.spawn(self._run_websocket(), name=f"{self.name}-websocket")
        finally:
            if barrier is not None:
                barrier.done(self.name)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        """Start a background task owned by this venue."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        """Cancel background tasks, close the websocket and the HTTP client."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=SHUTDOWN_GRACE)
            if pending:
                logger.warning(
                    "Venue tasks did not exit within grace period",
                    extra={"venue": self.name, "pending": len(pending)},
                )
        if self.websocket is not None:
            await self.websocket.shutdown()
        await self.requester.close()

    async def _run_pair_updates(self) -> None:
        force = True
        while True:
            try:
                await self.update_tradable_pairs(force=force)
            except EngineError as exc:
                self.last_error = str(exc)
                logger.warning(
                    "Tradable pair update failed", extra={"venue": self.name, "error": str(exc)}
                )
            force = False
            await asyncio.sleep(self.pair_update_interval)

    async def _run_websocket(self) -> None:
        try:
            await self.ws_connect()
        except EngineError as exc:
            self.last_error = str(exc)
            logger.error(
                "Websocket connection failed", extra={"venue": self.name, "error": str(exc)}
            )

    # Rate limiting

    def disable_rate_limiter(self) -> None:
        self.limiter.disable()

    def enable_rate_limiter(self) -> None:
        self.limiter.enable()

    async def __aenter__(self) -> VenueBase:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()
