"""Engine context.

Architecture:
    An Engine bundles one configuration with the caches, the venue registry,
    the order manager, the withdraw manager and the bank store. Every public
    entry point takes an engine (or uses the process default from
    ``get_engine``), so several engines can live in one process.

    The engine wires the orderbook cache's resync requests to the owning
    venue's ``update_orderbook`` and routes stream order updates into the
    order manager's ledger.

See Also:
    - runtime.registry: Venue construction and startup
    - api.facade: Scripting functions over an engine
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..cache import CacheFacade
from ..config import EngineConfig
from ..core.enums import AssetClass
from ..core.exceptions import EngineError
from ..models.currency import Pair
from ..trading.banking import BankStore
from ..trading.orders import OrderManager
from ..trading.withdraw import WithdrawManager, WithdrawRepository
from .registry import VenueFactory, VenueRegistry

logger = logging.getLogger(__name__)


class Engine:
    """Context value shared by every engine component."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        caches: CacheFacade | None = None,
        factories: dict[str, VenueFactory] | None = None,
        repository: WithdrawRepository | None = None,
        dry_run: bool = False,
    ) -> None:
        self.config = config or EngineConfig()
        self.caches = caches or CacheFacade()
        self.caches.orderbooks.resync_handler = self._request_resync
        self.registry = VenueRegistry(self.caches, factories=factories)
        self.banks = BankStore(self.config.bank_accounts)
        self.orders = OrderManager(self.registry, self.config.order_manager)
        self.withdrawals = WithdrawManager(self.registry, self.banks, repository, dry_run=dry_run)
        self._loaded = False
        self._resyncs: set[asyncio.Task] = set()

    @classmethod
    def from_dict(cls, document: dict[str, Any], **kwargs: Any) -> Engine:
        return cls(EngineConfig.from_dict(document), **kwargs)

    def load(self) -> None:
        """Build and configure the enabled venues; runs once."""
        if self._loaded:
            return
        for venue in self.registry.load(self.config):
            self.attach(venue)
        self._loaded = True

    def attach(self, venue: Any) -> None:
        """Route a venue's stream order updates into the order manager."""
        if hasattr(venue, "order_sink"):
            venue.order_sink = self.orders.on_order_update

    async def start(self, timeout: float | None = None) -> bool:
        self.load()
        started = await self.registry.start_all(timeout)
        logger.info(
            "Engine started",
            extra={"venues": self.registry.names(enabled_only=True), "complete": started},
        )
        return started

    async def shutdown(self) -> None:
        await self.orders.shutdown()
        for task in list(self._resyncs):
            task.cancel()
        await self.registry.shutdown()

    def _request_resync(self, venue_name: str, pair: Pair, asset: AssetClass) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Orderbook resync requested outside the event loop",
                extra={"venue": venue_name, "pair": str(pair)},
            )
            return
        task = loop.create_task(self._resync(venue_name, pair, asset))
        self._resyncs.add(task)
        task.add_done_callback(self._resyncs.discard)

    async def _resync(self, venue_name: str, pair: Pair, asset: AssetClass) -> None:
        try:
            venue = self.registry.get(venue_name)
            await venue.update_orderbook(pair, asset)
        except EngineError as exc:
            logger.warning(
                "Orderbook resync failed",
                extra={"venue": venue_name, "pair": str(pair), "error": str(exc)},
            )

    async def __aenter__(self) -> Engine:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


_default_engine: Engine | None = None


def get_engine() -> Engine:
    """Get the process default engine, creating an empty one on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = Engine()
    return _default_engine


def set_engine(engine: Engine | None) -> None:
    """Replace the process default engine (None resets it)."""
    global _default_engine
    _default_engine = engine
