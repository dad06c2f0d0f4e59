"""Custom exception hierarchy.

Every error raised by the engine derives from EngineError and carries an
ErrorKind tag. Venue errors keep the venue's original code and message.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error taxonomy shared by every component."""

    NOT_YET_IMPLEMENTED = "not_yet_implemented"
    UNSUPPORTED = "unsupported"
    INVALID_PAIR = "invalid_pair"
    INVALID_ASSET = "invalid_asset"
    INVALID_EXCHANGE = "invalid_exchange"
    INVALID_INPUT = "invalid_input"
    INVALID_SUBMIT = "invalid_submit"
    AUTH_REQUIRED = "auth_required"
    AUTH_REJECTED = "auth_rejected"
    RATE_LIMITED = "rate_limited"
    DECODE_ERROR = "decode_error"
    WS_TIMEOUT = "ws_timeout"
    WS_CLOSED = "ws_closed"
    WS_PROTOCOL = "ws_protocol"
    OTP_REJECTED = "otp_rejected"
    NOT_FOUND = "not_found"
    VENUE_ERROR = "venue_error"
    DUPLICATE_TRADE = "duplicate_trade"
    TRANSPORT = "transport"


class EngineError(Exception):
    """Base exception for all engine errors."""

    kind: ErrorKind = ErrorKind.VENUE_ERROR
    transient: bool = False


class NotYetImplementedError(EngineError):
    """The venue exposes the capability but has no implementation for it."""

    kind = ErrorKind.NOT_YET_IMPLEMENTED

    def __init__(self, operation: str, venue: str | None = None) -> None:
        where = f" for {venue}" if venue else ""
        super().__init__(f"{operation} is not yet implemented{where}")
        self.operation = operation
        self.venue = venue


class UnsupportedError(EngineError):
    """Capability is explicitly not supported by the venue."""

    kind = ErrorKind.UNSUPPORTED

    def __init__(self, message: str, *, venue: str | None = None, capability: Any = None) -> None:
        super().__init__(message)
        self.venue = venue
        self.capability = capability


class ValidationError(EngineError):
    """Input failed validation."""

    kind = ErrorKind.INVALID_INPUT


class InvalidPairError(ValidationError):
    """Currency pair could not be built or parsed."""

    kind = ErrorKind.INVALID_PAIR


class InvalidAssetError(ValidationError):
    """Asset class unknown or disabled for the venue."""

    kind = ErrorKind.INVALID_ASSET


class InvalidExchangeError(ValidationError):
    """Venue name is unknown to the registry."""

    kind = ErrorKind.INVALID_EXCHANGE


class InvalidSubmitError(ValidationError):
    """Order submission failed local validation."""

    kind = ErrorKind.INVALID_SUBMIT


class DuplicateTradeError(ValidationError):
    """A trade id appears twice in an aggregation input."""

    kind = ErrorKind.DUPLICATE_TRADE

    def __init__(self, trade_id: str) -> None:
        super().__init__(f"duplicate trade id {trade_id!r}")
        self.trade_id = trade_id


class AuthRequiredError(EngineError):
    """Credentials are missing or authenticated requests are disallowed."""

    kind = ErrorKind.AUTH_REQUIRED


class AuthRejectedError(EngineError):
    """The venue rejected the configured credentials."""

    kind = ErrorKind.AUTH_REJECTED


class OTPRejectedError(EngineError):
    """One-time password could not be generated or was refused."""

    kind = ErrorKind.OTP_REJECTED


class NotFoundError(EngineError):
    """Cache miss or unknown record."""

    kind = ErrorKind.NOT_FOUND


class DecodeError(EngineError):
    """Payload could not be decoded into the expected shape."""

    kind = ErrorKind.DECODE_ERROR

    def __init__(self, message: str, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


class VenueError(EngineError):
    """Structured error returned by a venue.

    The venue's own code and message are preserved verbatim.
    """

    kind = ErrorKind.VENUE_ERROR

    def __init__(
        self,
        message: str,
        *,
        venue: str | None = None,
        code: str | int | None = None,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.venue = venue
        self.code = code
        self.status_code = status_code
        self.transient = transient


class RateLimitError(VenueError):
    """Rate limit hit locally or reported by the venue (HTTP 429)."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, *, venue: str | None = None, retry_after: float = 1.0) -> None:
        super().__init__(message, venue=venue, status_code=429, transient=True)
        self.retry_after = retry_after


class TransportError(EngineError):
    """Network failure before a response was received."""

    kind = ErrorKind.TRANSPORT
    transient = True


class StreamError(EngineError):
    """Base class for websocket faults."""


class WSTimeoutError(StreamError):
    """No correlated response before the deadline."""

    kind = ErrorKind.WS_TIMEOUT
    transient = True


class WSClosedError(StreamError):
    """The websocket connection is closed or was shut down."""

    kind = ErrorKind.WS_CLOSED
    transient = True


class WSProtocolError(StreamError):
    """The venue broke the expected stream protocol."""

    kind = ErrorKind.WS_PROTOCOL


def is_transient_error(exc: BaseException) -> bool:
    """Return True if the error is worth retrying by the caller.

    Network failures, timeouts, rate limits and 5xx venue responses are
    transient. Validation, auth and other 4xx failures are terminal.
    """
    if isinstance(exc, EngineError):
        return bool(exc.transient)
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError))
