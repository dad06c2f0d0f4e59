"""Stable order filters and sorts.

Every filter keeps the input's relative order; sorts are stable so equal keys
keep their original order too.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from ..core.enums import OrderSide, OrderType
from ..models.currency import Pair
from ..models.order import OrderDetail


def filter_by_side(orders: Sequence[OrderDetail], side: OrderSide) -> list[OrderDetail]:
    if side in (OrderSide.ANY, OrderSide.UNKNOWN):
        return list(orders)
    return [order for order in orders if order.side is side]


def filter_by_type(orders: Sequence[OrderDetail], order_type: OrderType) -> list[OrderDetail]:
    if order_type in (OrderType.ANY, OrderType.UNKNOWN):
        return list(orders)
    return [order for order in orders if order.type is order_type]


def filter_by_tick_range(
    orders: Sequence[OrderDetail], start: datetime | None, end: datetime | None
) -> list[OrderDetail]:
    """Keep orders whose date lies in [start, end]; open bounds are ignored."""
    if start is None and end is None:
        return list(orders)
    kept: list[OrderDetail] = []
    for order in orders:
        if order.date is None:
            continue
        if start is not None and order.date < start:
            continue
        if end is not None and order.date > end:
            continue
        kept.append(order)
    return kept


def filter_by_pairs(orders: Sequence[OrderDetail], pairs: Iterable[Pair]) -> list[OrderDetail]:
    wanted = set(pairs)
    if not wanted:
        return list(orders)
    return [order for order in orders if order.pair in wanted]


def sort_by_price(orders: Sequence[OrderDetail], *, reverse: bool = False) -> list[OrderDetail]:
    return sorted(orders, key=lambda o: o.price, reverse=reverse)


def sort_by_date(orders: Sequence[OrderDetail], *, reverse: bool = False) -> list[OrderDetail]:
    return sorted(orders, key=lambda o: (o.date is None, o.date or datetime.min), reverse=reverse)


def sort_by_side(orders: Sequence[OrderDetail], *, reverse: bool = False) -> list[OrderDetail]:
    return sorted(orders, key=lambda o: o.side.value, reverse=reverse)


def sort_by_type(orders: Sequence[OrderDetail], *, reverse: bool = False) -> list[OrderDetail]:
    return sorted(orders, key=lambda o: o.type.value, reverse=reverse)
