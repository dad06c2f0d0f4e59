"""Core enumerations shared by every venue integration.

Architecture:
    This module defines the standardized enums used across the engine. String
    enums keep values serialisable and readable in logs and config files.

Key Types:
    - AssetClass: Instrument category within a venue
    - Interval: Kline interval taxonomy with fixed durations
    - OrderSide / OrderType / OrderStatus: Normalized order vocabulary
    - WithdrawType: Crypto, domestic fiat or international fiat withdrawal
    - ConnectionState: Websocket connection state machine
    - PairsState: Tri-state "asset enabled" flag for pair stores

See Also:
    - models.order: Uses order enums
    - kline: Uses Interval for span maths and aggregation
    - stream.connection: Drives ConnectionState transitions
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Optional

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR

# Conversion mapping
_SECONDS_MAP = {
    "15s": 15,
    "1m": _MINUTE,
    "3m": 3 * _MINUTE,
    "5m": 5 * _MINUTE,
    "10m": 10 * _MINUTE,
    "15m": 15 * _MINUTE,
    "30m": 30 * _MINUTE,
    "1h": _HOUR,
    "2h": 2 * _HOUR,
    "4h": 4 * _HOUR,
    "6h": 6 * _HOUR,
    "8h": 8 * _HOUR,
    "12h": 12 * _HOUR,
    "1d": _DAY,
    "3d": 3 * _DAY,
    "15d": 15 * _DAY,
    "1w": 7 * _DAY,
    "2w": 14 * _DAY,
    "1M": 30 * _DAY,  # 30 days approximation
    "1y": 365 * _DAY,
}

_WORD_MAP = {
    "15s": "fifteensecond",
    "1m": "onemin",
    "3m": "threemin",
    "5m": "fivemin",
    "10m": "tenmin",
    "15m": "fifteenmin",
    "30m": "thirtymin",
    "1h": "onehour",
    "2h": "twohour",
    "4h": "fourhour",
    "6h": "sixhour",
    "8h": "eighthour",
    "12h": "twelvehour",
    "1d": "oneday",
    "3d": "threeday",
    "15d": "fifteenday",
    "1w": "oneweek",
    "2w": "twoweek",
    "1M": "onemonth",
    "1y": "oneyear",
}


class AssetClass(str, Enum):
    """Instrument category within a venue.

    Each venue declares which subset it supports through its pair stores.
    """

    SPOT = "spot"
    MARGIN = "margin"
    FUTURES = "futures"
    PERPETUAL_SWAP = "perpetualswap"
    INDEX = "index"
    BINARY = "binary"

    def __str__(self) -> str:
        """String representation returns the value."""
        return self.value

    @classmethod
    def from_str(cls, value: str) -> "AssetClass":
        """Parse an asset class case-insensitively.

        Raises:
            ValueError: If the value does not name an asset class
        """
        normalized = value.strip().lower().replace("_", "")
        for item in cls:
            if item.value == normalized:
                return item
        raise ValueError(f"unknown asset class {value!r}")


class Interval(str, Enum):
    """Kline intervals with their canonical short forms.

    Architecture:
        String enum allows easy conversion to/from venue-specific formats.
        Provides helpers for duration maths used by range planning and
        trade aggregation.
    """

    # Seconds
    S15 = "15s"

    # Minutes
    M1 = "1m"
    M3 = "3m"
    M5 = "5m"
    M10 = "10m"
    M15 = "15m"
    M30 = "30m"

    # Hours
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    H6 = "6h"
    H8 = "8h"
    H12 = "12h"

    # Days/Weeks/Months/Years
    D1 = "1d"
    D3 = "3d"
    D15 = "15d"
    W1 = "1w"
    W2 = "2w"
    MO1 = "1M"
    Y1 = "1y"

    @property
    def seconds(self) -> int:
        """Number of seconds in this interval."""
        return _SECONDS_MAP[self.value]

    @property
    def milliseconds(self) -> int:
        """Number of milliseconds in this interval."""
        return self.seconds * 1000

    @property
    def duration(self) -> timedelta:
        """Interval length as a timedelta."""
        return timedelta(seconds=self.seconds)

    @property
    def word(self) -> str:
        """Lowercase word form, e.g. ``oneday``."""
        return _WORD_MAP[self.value]

    @classmethod
    def from_seconds(cls, seconds: int) -> Optional["Interval"]:
        """Get interval from seconds value. Returns None if no match."""
        for interval in cls:
            if interval.seconds == seconds:
                return interval
        return None

    @classmethod
    def from_str(cls, value: str) -> Optional["Interval"]:
        """Get interval from string value. Returns None if no match."""
        try:
            return cls(value)
        except ValueError:
            return None


class OrderSide(str, Enum):
    """Order sides normalized across venues."""

    BUY = "BUY"
    SELL = "SELL"
    BID = "BID"
    ASK = "ASK"
    ANY = "ANY"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value

    @property
    def is_submittable(self) -> bool:
        """Whether an order may be submitted with this side."""
        return self in (OrderSide.BUY, OrderSide.SELL, OrderSide.BID, OrderSide.ASK)


class OrderType(str, Enum):
    """Order types normalized across venues."""

    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP = "STOP"
    STOP_LIMIT = "STOP LIMIT"
    TRAILING_STOP = "TRAILING_STOP"
    POST_ONLY = "POST_ONLY"
    IMMEDIATE_OR_CANCEL = "IMMEDIATE_OR_CANCEL"
    FILL_OR_KILL = "FOK"
    ANY = "ANY"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value

    @property
    def is_submittable(self) -> bool:
        """Whether an order may be submitted with this type."""
        return self not in (OrderType.ANY, OrderType.UNKNOWN)


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    ANY = "ANY"
    NEW = "NEW"
    ACTIVE = "ACTIVE"
    OPEN = "OPEN"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    PARTIALLY_CANCELLED = "PARTIALLY_CANCELLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    PENDING_CANCEL = "PENDING_CANCEL"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    MARKET_UNAVAILABLE = "MARKET_UNAVAILABLE"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    HIDDEN = "HIDDEN"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Filled, Cancelled, Rejected and Expired orders never change again."""
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.EXPIRED}
)


class WithdrawType(str, Enum):
    """Withdrawal kinds, each gated by its own permission bit."""

    CRYPTO = "crypto"
    FIAT = "fiat"
    FIAT_INTERNATIONAL = "fiat_international"

    def __str__(self) -> str:
        return self.value


class ConnectionState(str, Enum):
    """Websocket connection states."""

    DISCONNECTED = "disconnected"
    DIALING = "dialing"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    SUBSCRIBED = "subscribed"
    DEGRADED = "degraded"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


class PairsState(str, Enum):
    """Tri-state asset flag of a pair store: unset falls back to venue defaults."""

    UNSET = "unset"
    ENABLED = "enabled"
    DISABLED = "disabled"

    @classmethod
    def from_bool(cls, value: bool | None) -> "PairsState":
        if value is None:
            return cls.UNSET
        return cls.ENABLED if value else cls.DISABLED

    def to_bool(self) -> bool | None:
        if self is PairsState.UNSET:
            return None
        return self is PairsState.ENABLED
