"""Runtime: dispatch, rate limiting, venue registry and the engine context."""

from .engine import Engine, get_engine, set_engine
from .limiter import DEFAULT_ENDPOINT, RateLimitConfig, RateLimiter, RateLimitRule
from .registry import (
    StartBarrier,
    VenueHealth,
    VenueRegistry,
    register_venue,
    registered_venues,
    unregister_venue,
    venue_factory,
)
from .requester import (
    AiohttpTransport,
    Credentials,
    HTTPTransport,
    Nonce,
    PreparedRequest,
    RecordingTransport,
    Request,
    Requester,
    TransportResponse,
    hmac_signature,
    query_string,
)

__all__ = [
    "Engine",
    "get_engine",
    "set_engine",
    "RateLimiter",
    "RateLimitRule",
    "RateLimitConfig",
    "DEFAULT_ENDPOINT",
    "VenueRegistry",
    "VenueHealth",
    "StartBarrier",
    "register_venue",
    "unregister_venue",
    "registered_venues",
    "venue_factory",
    "Requester",
    "Request",
    "PreparedRequest",
    "TransportResponse",
    "HTTPTransport",
    "AiohttpTransport",
    "RecordingTransport",
    "Credentials",
    "Nonce",
    "hmac_signature",
    "query_string",
]
