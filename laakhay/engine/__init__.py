"""Laakhay Engine - Multi-venue trading engine core."""

from .api import ExchangeFacade
from .cache import AccountCache, BufferConfig, CacheFacade, OrderbookCache, TickerCache
from .config import EngineConfig, ExchangeConfig, OrderManagerConfig
from .core import (
    AssetClass,
    AuthRejectedError,
    AuthRequiredError,
    Capability,
    ConnectionState,
    DecodeError,
    EngineError,
    ErrorKind,
    Features,
    Interval,
    InvalidAssetError,
    InvalidExchangeError,
    InvalidPairError,
    InvalidSubmitError,
    NotFoundError,
    NotYetImplementedError,
    OrderSide,
    OrderStatus,
    OrderType,
    OTPRejectedError,
    RateLimitError,
    UnsupportedError,
    ValidationError,
    VenueError,
    WithdrawPermission,
    WithdrawType,
    WSClosedError,
    WSProtocolError,
    WSTimeoutError,
    is_transient_error,
)
from .core.base import Venue, VenueBase
from .models import (
    Candle,
    Code,
    Holdings,
    KlineSeries,
    OrderBook,
    OrderDetail,
    OrderSubmit,
    Pair,
    PairFormat,
    SubmitResponse,
    Ticker,
    Trade,
    WithdrawRequest,
    new_pair,
    pair_from_string,
)
from .runtime import (
    Engine,
    RateLimiter,
    Requester,
    StartBarrier,
    VenueRegistry,
    get_engine,
    register_venue,
    set_engine,
)
from .stream import Subscription, WebsocketConnection
from .trading import OrderManager, WithdrawManager
from .utils import retry_async

__version__ = "0.1.0"

__all__ = [
    # Engine
    "Engine",
    "get_engine",
    "set_engine",
    "ExchangeFacade",
    "EngineConfig",
    "ExchangeConfig",
    "OrderManagerConfig",
    # Venues
    "Venue",
    "VenueBase",
    "VenueRegistry",
    "StartBarrier",
    "register_venue",
    "Requester",
    "RateLimiter",
    "WebsocketConnection",
    "Subscription",
    # Caches
    "CacheFacade",
    "TickerCache",
    "OrderbookCache",
    "AccountCache",
    "BufferConfig",
    # Trading
    "OrderManager",
    "WithdrawManager",
    # Models
    "Code",
    "Pair",
    "PairFormat",
    "new_pair",
    "pair_from_string",
    "Ticker",
    "OrderBook",
    "Holdings",
    "OrderSubmit",
    "SubmitResponse",
    "OrderDetail",
    "Trade",
    "Candle",
    "KlineSeries",
    "WithdrawRequest",
    # Enums and capabilities
    "AssetClass",
    "Interval",
    "OrderSide",
    "OrderType",
    "OrderStatus",
    "WithdrawType",
    "ConnectionState",
    "Capability",
    "WithdrawPermission",
    "Features",
    # Errors
    "EngineError",
    "ErrorKind",
    "ValidationError",
    "InvalidPairError",
    "InvalidAssetError",
    "InvalidExchangeError",
    "InvalidSubmitError",
    "NotFoundError",
    "NotYetImplementedError",
    "UnsupportedError",
    "AuthRequiredError",
    "AuthRejectedError",
    "RateLimitError",
    "DecodeError",
    "VenueError",
    "OTPRejectedError",
    "WSTimeoutError",
    "WSClosedError",
    "WSProtocolError",
    "is_transient_error",
    "retry_async",
]
