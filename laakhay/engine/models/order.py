"""Normalized order request and response models.

Architecture:
    Requests (OrderSubmit, OrderModify, OrderCancel) are lenient pydantic
    models: local validation is performed by ``OrderSubmit.ensure_valid`` so
    the first violated rule can be reported with a stable message.
    OrderDetail normalizes terminal states on construction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.enums import AssetClass, OrderSide, OrderStatus, OrderType
from ..core.exceptions import InvalidSubmitError
from .currency import Pair

ERR_PAIR_EMPTY = "order pair is empty"
ERR_SIDE_INVALID = "order side is invalid"
ERR_TYPE_INVALID = "order type is invalid"
ERR_AMOUNT_INVALID = "order amount is invalid"
ERR_LIMIT_PRICE = "order price must be set if limit order type is desired"


class TradeFill(BaseModel):
    """A fill belonging to an order."""

    tid: str = ""
    price: Decimal
    amount: Decimal
    fee: Decimal = Decimal(0)
    venue: str = ""
    side: OrderSide = OrderSide.UNKNOWN
    type: OrderType = OrderType.UNKNOWN
    description: str = ""
    timestamp: datetime | None = None
    is_maker: bool = False

    model_config = ConfigDict(frozen=True)


class OrderSubmit(BaseModel):
    """Order submission request."""

    venue: str = ""
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide = OrderSide.UNKNOWN
    type: OrderType = OrderType.UNKNOWN
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    trigger_price: Decimal = Decimal(0)
    leverage: str = ""
    client_id: str = ""
    client_order_id: str = ""
    account_id: str = ""
    immediate_or_cancel: bool = False
    fill_or_kill: bool = False
    post_only: bool = False
    hidden: bool = False

    model_config = ConfigDict(frozen=True)

    def ensure_valid(self) -> None:
        """Check local submission rules in order.

        Raises:
            InvalidSubmitError: Citing the first violated rule
        """
        if self.pair is None:
            raise InvalidSubmitError(ERR_PAIR_EMPTY)
        if not self.side.is_submittable:
            raise InvalidSubmitError(ERR_SIDE_INVALID)
        if not self.type.is_submittable:
            raise InvalidSubmitError(ERR_TYPE_INVALID)
        if self.amount <= 0:
            raise InvalidSubmitError(ERR_AMOUNT_INVALID)
        if self.type is OrderType.LIMIT and self.price <= 0:
            raise InvalidSubmitError(ERR_LIMIT_PRICE)


class SubmitResponse(BaseModel):
    """Venue answer to a submission."""

    order_id: str = ""
    placed: bool = False
    fully_matched: bool = False
    internal_id: str = ""
    trades: list[TradeFill] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class OrderModify(BaseModel):
    """Amendment of a resting order."""

    venue: str = ""
    order_id: str
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide | None = None
    type: OrderType = OrderType.UNKNOWN
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    trigger_price: Decimal = Decimal(0)
    client_order_id: str = ""

    model_config = ConfigDict(frozen=True)


class OrderCancel(BaseModel):
    """Cancellation of one order."""

    venue: str = ""
    order_id: str = ""
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide | None = None
    client_order_id: str = ""
    account_id: str = ""

    model_config = ConfigDict(frozen=True)


class CancelAllResponse(BaseModel):
    """Outcome of a bulk cancel: one status entry per attempted order id."""

    status: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def count(self) -> int:
        return len(self.status)

    def failed(self) -> dict[str, str]:
        """Entries whose status is not a successful cancel."""
        ok = {str(OrderStatus.CANCELLED), "success", ""}
        return {oid: status for oid, status in self.status.items() if status not in ok}


class OrderDetail(BaseModel):
    """Full order state as reported by a venue."""

    venue: str
    id: str
    internal_id: str = ""
    client_order_id: str = ""
    account_id: str = ""
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    side: OrderSide = OrderSide.UNKNOWN
    type: OrderType = OrderType.UNKNOWN
    status: OrderStatus = OrderStatus.UNKNOWN
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    executed_amount: Decimal = Decimal(0)
    remaining_amount: Decimal = Decimal(0)
    fee: Decimal = Decimal(0)
    date: datetime | None = None
    close_time: datetime | None = None
    last_updated: datetime | None = None
    trades: list[TradeFill] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize_terminal(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        status = data.get("status")
        if status is None:
            return data
        status = OrderStatus(status)
        amount = Decimal(str(data.get("amount", 0)))
        executed = Decimal(str(data.get("executed_amount", 0)))
        if status is OrderStatus.FILLED:
            data = {**data, "remaining_amount": Decimal(0)}
            if not executed and amount:
                data["executed_amount"] = amount
        elif status.is_terminal:
            if executed > amount:
                raise ValueError(f"executed amount {executed} exceeds order amount {amount}")
            if not amount:
                raise ValueError(f"{status} order requires a positive amount")
            # remaining is zero only for filled orders
            remaining = amount - executed
            if not remaining:
                data = {**data, "status": OrderStatus.FILLED}
            data = {**data, "remaining_amount": remaining}
        return data


class GetOrdersRequest(BaseModel):
    """Filter for active order and order history queries."""

    type: OrderType = OrderType.ANY
    side: OrderSide = OrderSide.ANY
    start: datetime | None = None
    end: datetime | None = None
    pairs: list[Pair] = Field(default_factory=list)
    asset: AssetClass = AssetClass.SPOT

    model_config = ConfigDict(frozen=True)
