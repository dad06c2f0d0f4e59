"""Order manager and in-memory order ledger.

Architecture:
    The manager validates a submission locally, resolves the venue through
    the registry, enforces the optional ``orderManager`` settings, assigns
    an internal id and delegates to the venue. Placed orders are recorded in
    the ledger keyed by (venue, external id). Cancel, modify and query
    delegate to the venue and touch the ledger only after the venue answers.
    Stream order updates reach the ledger through ``on_order_update``.

Design Decisions:
    - The ledger is guarded by one mutex; every mutation is short
    - Internal ids come from a process-wide counter and never repeat
    - Settings violations fail with InvalidSubmitError like local validation

See Also:
    - models.order: Request and response models
    - trading.filters: Stable filters over order lists
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from ..config import OrderManagerConfig
from ..core.capabilities import Capability
from ..core.enums import AssetClass, OrderSide, OrderStatus, OrderType
from ..core.exceptions import (
    AuthRequiredError,
    EngineError,
    InvalidExchangeError,
    InvalidSubmitError,
    NotFoundError,
)
from ..models.currency import Pair
from ..models.order import (
    CancelAllResponse,
    GetOrdersRequest,
    OrderCancel,
    OrderDetail,
    OrderModify,
    OrderSubmit,
    SubmitResponse,
)
from ..runtime.registry import VenueRegistry
from .filters import filter_by_pairs, filter_by_side, filter_by_tick_range, filter_by_type

logger = logging.getLogger(__name__)

ERR_EXCHANGE_NOT_ALLOWED = "order exchange not found in allowed list"
ERR_PAIR_NOT_ALLOWED = "order pair not found in allowed list"
ERR_MARKET_NOT_ALLOWED = "order market type is not allowed"

_internal_ids = itertools.count(1)
_internal_ids_lock = threading.Lock()


def next_internal_id() -> str:
    with _internal_ids_lock:
        return str(next(_internal_ids))


@dataclass
class OrderRecord:
    """Ledger entry of one order."""

    venue: str
    order_id: str
    internal_id: str = ""
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide = OrderSide.UNKNOWN
    type: OrderType = OrderType.UNKNOWN
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    status: OrderStatus = OrderStatus.NEW
    detail: OrderDetail | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[str, str]:
        return (self.venue.lower(), self.order_id)

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


class OrderLedger:
    """Orders keyed by (venue, external id) with an internal id index."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], OrderRecord] = {}
        self._internal: dict[str, tuple[str, str]] = {}
        self._lock = threading.Lock()

    def add(self, record: OrderRecord) -> None:
        with self._lock:
            self._records[record.key] = record
            if record.internal_id:
                self._internal[record.internal_id] = record.key

    def get(self, venue: str, order_id: str) -> OrderRecord:
        with self._lock:
            record = self._records.get((venue.lower(), order_id))
        if record is None:
            raise NotFoundError(f"order {order_id} on {venue} not in ledger")
        return record

    def get_by_internal_id(self, internal_id: str) -> OrderRecord:
        with self._lock:
            key = self._internal.get(internal_id)
            record = self._records.get(key) if key else None
        if record is None:
            raise NotFoundError(f"internal order id {internal_id} not in ledger")
        return record

    def apply_detail(self, detail: OrderDetail) -> OrderRecord:
        """Create or refresh the record of ``detail``."""
        key = (detail.venue.lower(), detail.id)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = OrderRecord(venue=detail.venue, order_id=detail.id, internal_id=detail.internal_id)
                self._records[key] = record
                if record.internal_id:
                    self._internal[record.internal_id] = key
            record.detail = detail
            record.pair = detail.pair or record.pair
            record.asset = detail.asset
            if detail.side is not OrderSide.UNKNOWN:
                record.side = detail.side
            if detail.type is not OrderType.UNKNOWN:
                record.type = detail.type
            if detail.price:
                record.price = detail.price
            if detail.amount:
                record.amount = detail.amount
            if detail.status is not OrderStatus.UNKNOWN:
                record.status = detail.status
            record.updated_at = datetime.now(UTC)
            return record

    def set_status(self, venue: str, order_id: str, status: OrderStatus) -> OrderRecord | None:
        with self._lock:
            record = self._records.get((venue.lower(), order_id))
            if record is None:
                return None
            record.status = status
            record.updated_at = datetime.now(UTC)
            return record

    def records(self, venue: str | None = None, *, active_only: bool = False) -> list[OrderRecord]:
        with self._lock:
            values = list(self._records.values())
        return [
            record
            for record in values
            if (venue is None or record.venue.lower() == venue.lower())
            and (record.is_active or not active_only)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class OrderManager:
    """Validates, routes and records orders."""

    def __init__(
        self,
        registry: VenueRegistry,
        config: OrderManagerConfig | None = None,
        *,
        ledger: OrderLedger | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or OrderManagerConfig()
        self.ledger = ledger or OrderLedger()

    def validate(self, order: OrderSubmit) -> None:
        """Local validation followed by the configured order settings.

        Raises:
            InvalidSubmitError: Citing the first violated rule
        """
        order.ensure_valid()
        cfg = self.config
        if not cfg.enforce_limit_config:
            return
        if cfg.allowed_exchanges and order.venue.lower() not in {
            name.lower() for name in cfg.allowed_exchanges
        }:
            raise InvalidSubmitError(ERR_EXCHANGE_NOT_ALLOWED)
        if cfg.allowed_pairs and order.pair not in cfg.allowed_pair_set():
            raise InvalidSubmitError(ERR_PAIR_NOT_ALLOWED)
        if not cfg.allow_market_orders and order.type is OrderType.MARKET:
            raise InvalidSubmitError(ERR_MARKET_NOT_ALLOWED)
        if cfg.limit_amount > 0 and order.amount > cfg.limit_amount:
            raise InvalidSubmitError(
                f"order amount {order.amount} exceeds the limit amount {cfg.limit_amount}"
            )

    def _venue(self, name: str, capability: Capability):
        venue = self.registry.get(name)
        if not venue.is_enabled():
            raise InvalidExchangeError(f"exchange {venue.name} is not enabled")
        venue.features.require(capability, venue=venue.name)
        if not venue.allow_authenticated_request():
            raise AuthRequiredError(f"{venue.name} authenticated requests are not enabled")
        return venue

    async def submit(self, order: OrderSubmit) -> SubmitResponse:
        """Validate and place an order; the response carries the internal id."""
        self.validate(order)
        venue = self._venue(order.venue, Capability.SUBMIT_ORDER)
        internal_id = next_internal_id()
        response = await venue.submit_order(order)
        response = response.model_copy(update={"internal_id": internal_id})

        if response.order_id:
            status = OrderStatus.FILLED if response.fully_matched else OrderStatus.NEW
            self.ledger.add(
                OrderRecord(
                    venue=venue.name,
                    order_id=response.order_id,
                    internal_id=internal_id,
                    pair=order.pair,
                    asset=order.asset,
                    side=order.side,
                    type=order.type,
                    price=order.price,
                    amount=order.amount,
                    status=status if response.placed else OrderStatus.REJECTED,
                )
            )
        logger.info(
            "Order submitted",
            extra={
                "venue": venue.name,
                "order_id": response.order_id,
                "internal_id": internal_id,
                "placed": response.placed,
            },
        )
        return response

    async def modify(self, request: OrderModify) -> OrderDetail:
        venue = self._venue(request.venue, Capability.MODIFY_ORDER)
        detail = await venue.modify_order(request)
        self.ledger.apply_detail(detail)
        return detail

    async def cancel(
        self,
        venue_name: str,
        order_id: str,
        *,
        pair: Pair | None = None,
        side: OrderSide | None = None,
        asset: AssetClass = AssetClass.SPOT,
    ) -> None:
        venue = self._venue(venue_name, Capability.CANCEL_ORDER)
        await venue.cancel_order(
            OrderCancel(venue=venue.name, order_id=order_id, pair=pair, side=side, asset=asset)
        )
        self.ledger.set_status(venue.name, order_id, OrderStatus.CANCELLED)
        logger.info("Order cancelled", extra={"venue": venue.name, "order_id": order_id})

    async def cancel_all(self, venue_name: str, request: OrderCancel | None = None) -> CancelAllResponse:
        venue = self._venue(venue_name, Capability.CANCEL_ORDERS)
        response = await venue.cancel_all_orders(request or OrderCancel(venue=venue.name))
        failed = response.failed()
        for order_id in response.status:
            if order_id not in failed:
                self.ledger.set_status(venue.name, order_id, OrderStatus.CANCELLED)
        if failed:
            logger.warning(
                "Some orders were not cancelled",
                extra={"venue": venue.name, "failed": failed},
            )
        return response

    async def query(
        self,
        venue_name: str,
        order_id: str,
        *,
        pair: Pair | None = None,
        asset: AssetClass = AssetClass.SPOT,
    ) -> OrderDetail:
        venue = self._venue(venue_name, Capability.GET_ORDER)
        detail = await venue.get_order_info(order_id, pair, asset)
        self.ledger.apply_detail(detail)
        return detail

    async def active_orders(self, venue_name: str, request: GetOrdersRequest | None = None) -> list[OrderDetail]:
        request = request or GetOrdersRequest()
        venue = self._venue(venue_name, Capability.GET_ORDERS)
        return apply_filters(await venue.get_active_orders(request), request)

    async def order_history(self, venue_name: str, request: GetOrdersRequest | None = None) -> list[OrderDetail]:
        request = request or GetOrdersRequest()
        venue = self._venue(venue_name, Capability.GET_ORDERS)
        return apply_filters(await venue.get_order_history(request), request)

    def on_order_update(self, detail: OrderDetail) -> None:
        """Stream sink for order updates."""
        record = self.ledger.apply_detail(detail)
        logger.debug(
            "Order update",
            extra={"venue": record.venue, "order_id": record.order_id, "status": str(record.status)},
        )

    async def shutdown(self) -> None:
        """Cancel open orders when ``cancelOrdersOnShutdown`` is set."""
        if not self.config.cancel_orders_on_shutdown:
            return
        for record in self.ledger.records(active_only=True):
            try:
                await self.cancel(
                    record.venue, record.order_id, pair=record.pair, side=record.side, asset=record.asset
                )
            except EngineError as exc:
                logger.error(
                    "Failed to cancel order on shutdown",
                    extra={"venue": record.venue, "order_id": record.order_id, "error": str(exc)},
                )


def apply_filters(orders: list[OrderDetail], request: GetOrdersRequest) -> list[OrderDetail]:
    """Apply the side, type, time range and pair filters of ``request``."""
    orders = filter_by_side(orders, request.side)
    orders = filter_by_type(orders, request.type)
    orders = filter_by_tick_range(orders, request.start, request.end)
    return filter_by_pairs(orders, request.pairs)
