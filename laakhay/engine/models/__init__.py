"""Data models."""

from .account import Balance, Holdings, SubAccount
from .currency import (
    Code,
    Pair,
    PairFormat,
    contains_pair,
    dedupe_pairs,
    new_pair,
    pair_from_string,
    parse_pair,
    parse_pair_format,
    parse_pair_with_index,
)
from .funding import FeeBuilder, FeeType, FundHistory
from .kline import Candle, DateRange, KlineSeries, Trade
from .order import (
    CancelAllResponse,
    GetOrdersRequest,
    OrderCancel,
    OrderDetail,
    OrderModify,
    OrderSubmit,
    SubmitResponse,
    TradeFill,
)
from .orderbook import Level, OrderBook, OrderbookUpdate
from .pair_store import PairDifference, PairManager, PairStore
from .ticker import Ticker
from .withdraw import (
    BankAccount,
    CryptoWithdrawDetails,
    FiatWithdrawDetails,
    VenueWithdrawResponse,
    WithdrawEvent,
    WithdrawRequest,
)

__all__ = [
    "Code",
    "Pair",
    "PairFormat",
    "new_pair",
    "parse_pair",
    "parse_pair_format",
    "parse_pair_with_index",
    "pair_from_string",
    "contains_pair",
    "dedupe_pairs",
    "PairStore",
    "PairManager",
    "PairDifference",
    "Ticker",
    "Level",
    "OrderBook",
    "OrderbookUpdate",
    "Balance",
    "SubAccount",
    "Holdings",
    "TradeFill",
    "OrderSubmit",
    "SubmitResponse",
    "OrderModify",
    "OrderCancel",
    "CancelAllResponse",
    "OrderDetail",
    "GetOrdersRequest",
    "Trade",
    "Candle",
    "KlineSeries",
    "DateRange",
    "BankAccount",
    "CryptoWithdrawDetails",
    "FiatWithdrawDetails",
    "WithdrawRequest",
    "VenueWithdrawResponse",
    "WithdrawEvent",
    "FeeType",
    "FeeBuilder",
    "FundHistory",
]
