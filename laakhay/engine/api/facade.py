"""Scripting facade over an engine context.

Architecture:
    ExchangeFacade implements the Facade pattern over one Engine: every call
    resolves the venue through the registry, checks that it is enabled and
    delegates to the venue, the order manager or the withdraw manager.
    Pairs may be passed as ``Pair`` values or strings such as ``"BTC-USD"``.

Design Decisions:
    - Order submission always goes through the OrderManager so the order
      settings and the ledger apply to scripted orders too
    - ``cancel_order`` queries the order first so venues that need the pair
      and side for a cancel receive them
    - ``ohlcv`` uses the extended candle path and returns ascending candles

See Also:
    - runtime.engine: Engine context
    - trading.orders: Order manager
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..core.enums import AssetClass, Interval, WithdrawType
from ..core.exceptions import InvalidExchangeError, ValidationError
from ..models.account import Holdings
from ..models.currency import Code, Pair, pair_from_string
from ..models.kline import Candle
from ..models.order import OrderDetail, OrderSubmit, SubmitResponse
from ..models.orderbook import OrderBook
from ..models.ticker import Ticker
from ..models.withdraw import FiatWithdrawDetails, WithdrawEvent, WithdrawRequest
from ..runtime.engine import Engine, get_engine

logger = logging.getLogger(__name__)


def _as_pair(pair: Pair | str) -> Pair:
    return pair if isinstance(pair, Pair) else pair_from_string(pair)


class ExchangeFacade:
    """Exchange functions for scripts.

    Example:
        >>> facade = ExchangeFacade(engine)
        >>> ticker = await facade.ticker("bitstamp", "BTC-USD")
        >>> book = await facade.orderbook("bitstamp", "BTC-USD")
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self.engine = engine or get_engine()

    def _venue(self, name: str):
        venue = self.engine.registry.get(name)
        if not venue.is_enabled():
            raise InvalidExchangeError(f"exchange {venue.name} is not enabled")
        return venue

    def exchanges(self, enabled_only: bool = True) -> list[str]:
        return self.engine.registry.names(enabled_only=enabled_only)

    def is_enabled(self, name: str) -> bool:
        try:
            return self.engine.registry.get(name).is_enabled()
        except InvalidExchangeError:
            return False

    async def ticker(self, exch: str, pair: Pair | str, asset: AssetClass = AssetClass.SPOT) -> Ticker:
        return await self._venue(exch).fetch_ticker(_as_pair(pair), asset)

    async def orderbook(
        self, exch: str, pair: Pair | str, asset: AssetClass = AssetClass.SPOT
    ) -> OrderBook:
        return await self._venue(exch).fetch_orderbook(_as_pair(pair), asset)

    def pairs(
        self, exch: str, enabled_only: bool = True, asset: AssetClass = AssetClass.SPOT
    ) -> list[Pair]:
        venue = self._venue(exch)
        if enabled_only:
            return venue.get_enabled_pairs(asset)
        return venue.get_available_pairs(asset)

    async def account_information(self, exch: str) -> Holdings:
        return await self._venue(exch).fetch_account()

    async def query_order(self, exch: str, order_id: str) -> OrderDetail:
        venue = self._venue(exch)
        return await self.engine.orders.query(venue.name, order_id)

    async def submit_order(self, order: OrderSubmit) -> SubmitResponse:
        venue = self._venue(order.venue)
        return await self.engine.orders.submit(order.model_copy(update={"venue": venue.name}))

    async def cancel_order(self, exch: str, order_id: str) -> bool:
        """Cancel an order; returns True once the venue accepted the cancel."""
        venue = self._venue(exch)
        detail = await self.engine.orders.query(venue.name, order_id)
        await self.engine.orders.cancel(
            venue.name, order_id, pair=detail.pair, side=detail.side, asset=detail.asset
        )
        return True

    async def deposit_address(self, exch: str, currency: Code | str, account_id: str = "") -> str:
        return await self._venue(exch).get_deposit_address(Code(currency), account_id)

    async def withdrawal_crypto(self, exch: str, request: WithdrawRequest) -> WithdrawEvent:
        if request.type is not WithdrawType.CRYPTO:
            raise ValidationError(f"expected a crypto withdrawal, got {request.type}")
        venue = self._venue(exch)
        return await self.engine.withdrawals.submit(request.model_copy(update={"venue": venue.name}))

    async def withdrawal_fiat(self, exch: str, bank_id: str, request: WithdrawRequest) -> WithdrawEvent:
        """Fiat withdrawal to the configured bank account ``bank_id``."""
        if request.type is WithdrawType.CRYPTO:
            raise ValidationError("expected a fiat withdrawal, got crypto")
        venue = self._venue(exch)
        fiat = request.fiat or FiatWithdrawDetails()
        request = request.model_copy(
            update={
                "venue": venue.name,
                "fiat": fiat.model_copy(update={"bank_account_id": bank_id, "bank": None}),
            }
        )
        return await self.engine.withdrawals.submit(request)

    async def ohlcv(
        self,
        exch: str,
        pair: Pair | str,
        asset: AssetClass,
        start: datetime,
        end: datetime,
        interval: Interval,
    ) -> list[Candle]:
        venue = self._venue(exch)
        series = await venue.historic_candles_extended(_as_pair(pair), asset, start, end, interval)
        logger.debug(
            "ohlcv",
            extra={"venue": venue.name, "pair": str(series.pair), "candles": len(series.candles)},
        )
        return list(series.candles)
