"""Order management, withdrawals and their helpers."""

from .banking import BankStore
from .filters import (
    filter_by_pairs,
    filter_by_side,
    filter_by_tick_range,
    filter_by_type,
    sort_by_date,
    sort_by_price,
    sort_by_side,
    sort_by_type,
)
from .orders import OrderLedger, OrderManager, OrderRecord, apply_filters, next_internal_id
from .otp import totp
from .withdraw import InMemoryWithdrawRepository, WithdrawManager, WithdrawRepository

__all__ = [
    "BankStore",
    "OrderManager",
    "OrderLedger",
    "OrderRecord",
    "apply_filters",
    "next_internal_id",
    "WithdrawManager",
    "WithdrawRepository",
    "InMemoryWithdrawRepository",
    "totp",
    "filter_by_side",
    "filter_by_type",
    "filter_by_tick_range",
    "filter_by_pairs",
    "sort_by_price",
    "sort_by_date",
    "sort_by_side",
    "sort_by_type",
]
