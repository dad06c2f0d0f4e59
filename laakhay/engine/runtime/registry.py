"""Venue factories, the venue registry and the start barrier.

Architecture:
    Integrations register a factory under their venue name with
    ``@register_venue("name")``. ``VenueRegistry.load`` walks the configured
    exchanges, builds one instance per enabled entry through its factory and
    applies the entry's configuration. ``start_all`` starts every venue
    concurrently and waits on a StartBarrier that each venue releases once
    its initial setup is done.

Design Decisions:
    - A venue whose start fails is logged, disabled and reported through
      ``health``; the other venues keep coming up
    - Lookup is case-insensitive and fails with InvalidExchangeError
    - The factory table is process wide; registries are per engine

See Also:
    - core.base.VenueBase: What the factories build
    - runtime.engine: Owns a registry per engine context
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..cache import CacheFacade
from ..config import EngineConfig, ExchangeConfig
from ..core.enums import ConnectionState
from ..core.exceptions import InvalidExchangeError

if TYPE_CHECKING:
    from ..core.base import Venue

logger = logging.getLogger(__name__)

VenueFactory = Callable[[CacheFacade], "Venue"]

_FACTORIES: dict[str, VenueFactory] = {}


def register_venue(name: str) -> Callable[[Any], Any]:
    """Class decorator registering a venue factory under ``name``.

    Raises:
        InvalidExchangeError: If the name is already registered
    """

    def decorator(factory: Any) -> Any:
        key = name.lower()
        if key in _FACTORIES:
            raise InvalidExchangeError(f"Exchange '{name}' is already registered")
        _FACTORIES[key] = factory
        return factory

    return decorator


def unregister_venue(name: str) -> None:
    if _FACTORIES.pop(name.lower(), None) is None:
        raise InvalidExchangeError(f"Exchange '{name}' is not registered")


def registered_venues() -> list[str]:
    return sorted(_FACTORIES)


def venue_factory(name: str) -> VenueFactory:
    try:
        return _FACTORIES[name.lower()]
    except KeyError:
        raise InvalidExchangeError(f"Exchange '{name}' is not registered") from None


class StartBarrier:
    """Completion barrier over a set of venue names."""

    def __init__(self, names: Iterable[str]) -> None:
        self._pending = {name.lower() for name in names}
        self._event = asyncio.Event()
        if not self._pending:
            self._event.set()

    @property
    def pending(self) -> set[str]:
        return set(self._pending)

    def done(self, name: str) -> None:
        """Mark ``name`` finished; repeated calls are ignored."""
        self._pending.discard(name.lower())
        if not self._pending:
            self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait for every venue; returns False on timeout."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class VenueHealth:
    name: str
    enabled: bool
    websocket_state: ConnectionState = ConnectionState.DISCONNECTED
    last_error: str | None = None


class VenueRegistry:
    """Venues of one engine, keyed by lower-cased name."""

    def __init__(
        self,
        caches: CacheFacade | None = None,
        *,
        factories: dict[str, VenueFactory] | None = None,
    ) -> None:
        self.caches = caches or CacheFacade()
        self._factories = {k.lower(): v for k, v in (factories or {}).items()}
        self._venues: dict[str, Venue] = {}
        self._errors: dict[str, str] = {}

    def load(self, config: EngineConfig) -> list[Venue]:
        """Instantiate and configure every enabled exchange of ``config``."""
        loaded: list[Venue] = []
        for exchange in config.exchanges:
            if not exchange.enabled:
                logger.debug("Exchange disabled in config", extra={"venue": exchange.name})
                continue
            try:
                venue = self.create(exchange)
            except InvalidExchangeError as exc:
                self._errors[exchange.name.lower()] = str(exc)
                logger.warning(
                    "Unknown exchange in config", extra={"venue": exchange.name, "error": str(exc)}
                )
                continue
            loaded.append(venue)
        return loaded

    def create(self, exchange: ExchangeConfig) -> Venue:
        factory = self._factories.get(exchange.name.lower()) or venue_factory(exchange.name)
        venue = factory(self.caches)
        venue.apply_config(exchange)
        self.add(venue)
        return venue

    def add(self, venue: Venue) -> None:
        key = venue.name.lower()
        if key in self._venues:
            raise InvalidExchangeError(f"Exchange '{venue.name}' is already loaded")
        self._venues[key] = venue

    def remove(self, name: str) -> Venue:
        venue = self.get(name)
        del self._venues[name.lower()]
        return venue

    def get(self, name: str) -> Venue:
        """Case-insensitive lookup.

        Raises:
            InvalidExchangeError: If no venue with that name is loaded
        """
        try:
            return self._venues[name.lower()]
        except KeyError:
            raise InvalidExchangeError(f"exchange {name!r} not found") from None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._venues

    def __len__(self) -> int:
        return len(self._venues)

    def all(self) -> list[Venue]:
        return list(self._venues.values())

    def enabled(self) -> list[Venue]:
        return [venue for venue in self._venues.values() if venue.is_enabled()]

    def names(self, enabled_only: bool = False) -> list[str]:
        venues = self.enabled() if enabled_only else self.all()
        return [venue.name for venue in venues]

    async def start_all(self, timeout: float | None = None) -> bool:
        """Start every enabled venue concurrently and wait on the barrier.

        Returns:
            False if the barrier timed out
        """
        venues = self.enabled()
        barrier = StartBarrier(venue.name for venue in venues)
        tasks = {
            venue.name.lower(): asyncio.create_task(
                self._start(venue, barrier), name=f"{venue.name}-start"
            )
            for venue in venues
        }
        completed = await barrier.wait(timeout)
        if not completed:
            pending = sorted(barrier.pending)
            logger.warning("Venue start timed out", extra={"pending": pending})
            for name in pending:
                tasks[name].cancel()
                self._errors[name] = f"start timed out after {timeout}s"
                self._venues[name].set_enabled(False)
        # Venues release the barrier before their start coroutine returns.
        await asyncio.gather(*tasks.values(), return_exceptions=not completed)
        return completed

    async def _start(self, venue: Venue, barrier: StartBarrier) -> None:
        try:
            await venue.start(barrier)
        except Exception as exc:  # noqa: BLE001
            self._errors[venue.name.lower()] = str(exc)
            venue.set_enabled(False)
            logger.error(
                "venue_start_failed",
                extra={"venue": venue.name, "error": str(exc)},
                exc_info=True,
            )
        finally:
            barrier.done(venue.name)

    def health(self) -> dict[str, VenueHealth]:
        report: dict[str, VenueHealth] = {}
        for key, venue in self._venues.items():
            report[venue.name] = VenueHealth(
                name=venue.name,
                enabled=venue.is_enabled(),
                websocket_state=getattr(venue, "websocket_state", ConnectionState.DISCONNECTED),
                last_error=self._errors.get(key) or getattr(venue, "last_error", None),
            )
        return report

    async def shutdown(self) -> None:
        venues = self.all()
        results = await asyncio.gather(*(venue.shutdown() for venue in venues), return_exceptions=True)
        for venue, result in zip(venues, results):
            if isinstance(result, Exception):
                logger.error(
                    "Venue shutdown failed", extra={"venue": venue.name, "error": str(result)}
                )
