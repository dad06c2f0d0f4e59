"""Core components."""

from .capabilities import Capability, Features, WithdrawPermission, format_withdraw_permissions
from .enums import (
    AssetClass,
    ConnectionState,
    Interval,
    OrderSide,
    OrderStatus,
    OrderType,
    PairsState,
    WithdrawType,
)
from .exceptions import (
    AuthRejectedError,
    AuthRequiredError,
    DecodeError,
    DuplicateTradeError,
    EngineError,
    ErrorKind,
    InvalidAssetError,
    InvalidExchangeError,
    InvalidPairError,
    InvalidSubmitError,
    NotFoundError,
    NotYetImplementedError,
    OTPRejectedError,
    RateLimitError,
    StreamError,
    TransportError,
    UnsupportedError,
    ValidationError,
    VenueError,
    WSClosedError,
    WSProtocolError,
    WSTimeoutError,
    is_transient_error,
)

__all__ = [
    # Enums
    "AssetClass",
    "ConnectionState",
    "Interval",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "PairsState",
    "WithdrawType",
    # Capabilities
    "Capability",
    "Features",
    "WithdrawPermission",
    "format_withdraw_permissions",
    # Errors
    "EngineError",
    "ErrorKind",
    "NotYetImplementedError",
    "UnsupportedError",
    "ValidationError",
    "InvalidPairError",
    "InvalidAssetError",
    "InvalidExchangeError",
    "InvalidSubmitError",
    "DuplicateTradeError",
    "AuthRequiredError",
    "AuthRejectedError",
    "OTPRejectedError",
    "NotFoundError",
    "DecodeError",
    "VenueError",
    "RateLimitError",
    "TransportError",
    "StreamError",
    "WSTimeoutError",
    "WSClosedError",
    "WSProtocolError",
    "is_transient_error",
]
