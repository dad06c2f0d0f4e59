"""Legacy-compatible configuration models.

Architecture:
    The engine consumes an already parsed JSON document. Field names follow
    the legacy camelCase keys through pydantic aliases, and ``to_dict`` dumps
    with the same aliases so a document survives a load/save round trip.
    Unknown keys are preserved (``extra="allow"``).

Design Decisions:
    - Durations stay in nanoseconds, as written in legacy files, and are
      exposed in seconds through ``*_seconds`` properties
    - Zero durations and limits fall back to defaults, matching the legacy
      config check step
    - Loading files from disk and migrating old layouts are not handled here
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .core.enums import AssetClass
from .core.exceptions import InvalidExchangeError
from .models.currency import Pair, PairFormat, pair_from_string, parse_pair_format
from .models.withdraw import BankAccount

NANOSECONDS_PER_SECOND = 1_000_000_000

DEFAULT_HTTP_TIMEOUT = 15 * NANOSECONDS_PER_SECOND
DEFAULT_WEBSOCKET_RESPONSE_CHECK_TIMEOUT = 30_000_000  # 30ms
DEFAULT_WEBSOCKET_RESPONSE_MAX_LIMIT = 7 * NANOSECONDS_PER_SECOND
DEFAULT_WEBSOCKET_TRAFFIC_TIMEOUT = 30 * NANOSECONDS_PER_SECOND
DEFAULT_WEBSOCKET_ORDERBOOK_BUFFER_LIMIT = 5

_LEGACY = ConfigDict(populate_by_name=True, extra="allow")


class CredentialsConfig(BaseModel):
    key: str = Field("", alias="key")
    secret: str = Field("", alias="secret")
    client_id: str = Field("", alias="clientID")
    otp_secret: str = Field("", alias="otpSecret")
    pem_key: str = Field("", alias="pemKey")

    model_config = _LEGACY


class APIConfig(BaseModel):
    authenticated_support: bool = Field(False, alias="authenticatedSupport")
    authenticated_websocket_support: bool = Field(False, alias="authenticatedWebsocketApiSupport")
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig, alias="credentials")

    model_config = _LEGACY


class PairFormatConfig(BaseModel):
    uppercase: bool = Field(True, alias="uppercase")
    delimiter: str = Field("", alias="delimiter")
    index: str = Field("", alias="index")

    model_config = _LEGACY

    def to_format(self) -> PairFormat:
        return PairFormat(uppercase=self.uppercase, delimiter=self.delimiter, index=self.index)


class AssetPairsConfig(BaseModel):
    """Pairs of one asset class. Legacy files store comma-joined strings."""

    enabled: list[str] = Field(default_factory=list, alias="enabled")
    available: list[str] = Field(default_factory=list, alias="available")
    asset_enabled: bool | None = Field(None, alias="assetEnabled")
    request_format: PairFormatConfig | None = Field(None, alias="requestFormat")
    config_format: PairFormatConfig | None = Field(None, alias="configFormat")

    model_config = _LEGACY

    @field_validator("enabled", "available", mode="before")
    @classmethod
    def _split_joined(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value or []

    @field_serializer("enabled", "available")
    def _join(self, value: list[str]) -> str:
        return ",".join(value)

    def enabled_pairs(self, fmt: PairFormat) -> list[Pair]:
        return [_parse_config_pair(item, fmt) for item in self.enabled]

    def available_pairs(self, fmt: PairFormat) -> list[Pair]:
        return [_parse_config_pair(item, fmt) for item in self.available]


class CurrencyPairsConfig(BaseModel):
    request_format: PairFormatConfig = Field(default_factory=PairFormatConfig, alias="requestFormat")
    config_format: PairFormatConfig = Field(
        default_factory=lambda: PairFormatConfig(delimiter="-"), alias="configFormat"
    )
    use_global_format: bool = Field(False, alias="useGlobalFormat")
    last_updated: int = Field(0, alias="lastUpdated")
    pairs: dict[AssetClass, AssetPairsConfig] = Field(default_factory=dict, alias="pairs")

    model_config = _LEGACY


class FeaturesEnabledConfig(BaseModel):
    auto_pair_updates: bool = Field(False, alias="autoPairUpdates")
    websocket: bool = Field(False, alias="websocketAPI")

    model_config = _LEGACY


class FeaturesConfig(BaseModel):
    enabled: FeaturesEnabledConfig = Field(default_factory=FeaturesEnabledConfig, alias="enabled")

    model_config = _LEGACY


class ExchangeConfig(BaseModel):
    """Configuration of one venue."""

    name: str = Field(..., alias="name", min_length=1)
    enabled: bool = Field(False, alias="enabled")
    verbose: bool = Field(False, alias="verbose")
    http_timeout: int = Field(DEFAULT_HTTP_TIMEOUT, alias="httpTimeout")
    http_user_agent: str = Field("", alias="httpUserAgent")
    websocket_response_check_timeout: int = Field(
        DEFAULT_WEBSOCKET_RESPONSE_CHECK_TIMEOUT, alias="websocketResponseCheckTimeout"
    )
    websocket_response_max_limit: int = Field(
        DEFAULT_WEBSOCKET_RESPONSE_MAX_LIMIT, alias="websocketResponseMaxLimit"
    )
    websocket_traffic_timeout: int = Field(
        DEFAULT_WEBSOCKET_TRAFFIC_TIMEOUT, alias="websocketTrafficTimeout"
    )
    websocket_orderbook_buffer_limit: int = Field(
        DEFAULT_WEBSOCKET_ORDERBOOK_BUFFER_LIMIT, alias="websocketOrderbookBufferLimit"
    )
    currency_pairs: CurrencyPairsConfig = Field(
        default_factory=CurrencyPairsConfig, alias="currencyPairs"
    )
    api: APIConfig = Field(default_factory=APIConfig, alias="api")
    features: FeaturesConfig = Field(default_factory=FeaturesConfig, alias="features")
    bank_accounts: list[BankAccount] = Field(default_factory=list, alias="bankAccounts")

    model_config = _LEGACY

    @field_validator("http_timeout", mode="after")
    @classmethod
    def _default_http_timeout(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_HTTP_TIMEOUT

    @field_validator("websocket_response_check_timeout", mode="after")
    @classmethod
    def _default_check_timeout(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_WEBSOCKET_RESPONSE_CHECK_TIMEOUT

    @field_validator("websocket_response_max_limit", mode="after")
    @classmethod
    def _default_max_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_WEBSOCKET_RESPONSE_MAX_LIMIT

    @field_validator("websocket_traffic_timeout", mode="after")
    @classmethod
    def _default_traffic_timeout(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_WEBSOCKET_TRAFFIC_TIMEOUT

    @field_validator("websocket_orderbook_buffer_limit", mode="after")
    @classmethod
    def _default_buffer_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_WEBSOCKET_ORDERBOOK_BUFFER_LIMIT

    @property
    def http_timeout_seconds(self) -> float:
        return self.http_timeout / NANOSECONDS_PER_SECOND

    @property
    def websocket_response_check_timeout_seconds(self) -> float:
        return self.websocket_response_check_timeout / NANOSECONDS_PER_SECOND

    @property
    def websocket_response_max_limit_seconds(self) -> float:
        return self.websocket_response_max_limit / NANOSECONDS_PER_SECOND

    @property
    def websocket_traffic_timeout_seconds(self) -> float:
        return self.websocket_traffic_timeout / NANOSECONDS_PER_SECOND

    @property
    def has_credentials(self) -> bool:
        creds = self.api.credentials
        return bool(creds.key and creds.secret)


class OrderManagerConfig(BaseModel):
    enforce_limit_config: bool = Field(False, alias="enforceLimitConfig")
    allow_market_orders: bool = Field(True, alias="allowMarketOrders")
    cancel_orders_on_shutdown: bool = Field(False, alias="cancelOrdersOnShutdown")
    limit_amount: Decimal = Field(Decimal(0), alias="limitAmount")
    allowed_pairs: list[str] = Field(default_factory=list, alias="allowedPairs")
    allowed_exchanges: list[str] = Field(default_factory=list, alias="allowedExchanges")

    model_config = _LEGACY

    def allowed_pair_set(self) -> set[Pair]:
        return {pair_from_string(item) for item in self.allowed_pairs}


class EngineConfig(BaseModel):
    """Top-level configuration document."""

    name: str = Field("", alias="name")
    database: dict[str, Any] = Field(default_factory=dict, alias="database")
    exchanges: list[ExchangeConfig] = Field(default_factory=list, alias="exchanges")
    communications: dict[str, Any] = Field(default_factory=dict, alias="communications")
    bank_accounts: list[BankAccount] = Field(default_factory=list, alias="bankAccounts")
    order_manager: OrderManagerConfig = Field(
        default_factory=OrderManagerConfig, alias="orderManager"
    )

    model_config = _LEGACY

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "EngineConfig":
        return cls.model_validate(document)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def get_exchange(self, name: str) -> ExchangeConfig:
        """Case-insensitive lookup.

        Raises:
            InvalidExchangeError: If no exchange has that name
        """
        wanted = name.lower()
        for exchange in self.exchanges:
            if exchange.name.lower() == wanted:
                return exchange
        raise InvalidExchangeError(f"exchange {name!r} not found in config")

    def enabled_exchanges(self) -> list[ExchangeConfig]:
        return [exchange for exchange in self.exchanges if exchange.enabled]


def _parse_config_pair(value: str, fmt: PairFormat) -> Pair:
    if fmt.delimiter or fmt.index:
        return parse_pair_format(value, fmt)
    return pair_from_string(value)
