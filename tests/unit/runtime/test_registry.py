"""Unit tests for venue registration, loading and startup."""

import asyncio

import pytest

from fakes import FakeVenue, engine_document
from laakhay.engine.config import EngineConfig
from laakhay.engine.core.enums import AssetClass, ConnectionState
from laakhay.engine.core.exceptions import InvalidExchangeError
from laakhay.engine.models.currency import new_pair
from laakhay.engine.runtime.registry import (
    StartBarrier,
    VenueRegistry,
    register_venue,
    registered_venues,
    unregister_venue,
    venue_factory,
)


class BrokenVenue(FakeVenue):
    name = "brokenx"

    async def setup(self) -> None:
        raise RuntimeError("exchange info unavailable")


class SlowVenue(FakeVenue):
    name = "slowx"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.release = asyncio.Event()

    async def setup(self) -> None:
        await self.release.wait()


def _config(*names: str) -> EngineConfig:
    document = engine_document()
    for name in names:
        document["exchanges"].append({"name": name, "enabled": True})
    return EngineConfig.from_dict(document)


def _registry() -> VenueRegistry:
    return VenueRegistry(factories={"fakex": FakeVenue, "brokenx": BrokenVenue, "slowx": SlowVenue})


class TestLoad:
    def test_load_applies_exchange_config(self):
        registry = _registry()
        loaded = registry.load(_config())

        assert [venue.name for venue in loaded] == ["fakex"]
        venue = registry.get("FakeX")
        assert venue.is_enabled()
        assert venue.allow_authenticated_request()
        assert venue.get_enabled_pairs(AssetClass.SPOT) == [new_pair("BTC", "USD")]
        assert "fakex" in registry
        assert len(registry) == 1

    def test_disabled_and_unknown_exchanges_skipped(self):
        document = engine_document()
        document["exchanges"].append({"name": "offx", "enabled": False})
        document["exchanges"].append({"name": "nowherex", "enabled": True})
        registry = _registry()

        registry.load(EngineConfig.from_dict(document))

        assert registry.names() == ["fakex"]
        assert "nowherex" not in registry

    def test_unknown_lookup(self):
        with pytest.raises(InvalidExchangeError):
            _registry().get("nope")

    def test_duplicate_add_rejected(self):
        registry = _registry()
        registry.load(_config())
        with pytest.raises(InvalidExchangeError, match="already loaded"):
            registry.add(FakeVenue())

    def test_remove(self):
        registry = _registry()
        registry.load(_config())
        removed = registry.remove("FAKEX")
        assert removed.name == "fakex"
        assert len(registry) == 0


class TestStart:
    @pytest.mark.asyncio
    async def test_start_all_releases_barrier(self):
        registry = _registry()
        registry.load(_config())
        assert await registry.start_all(timeout=1.0)
        health = registry.health()
        assert health["fakex"].enabled
        assert health["fakex"].websocket_state is ConnectionState.DISCONNECTED
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_failed_start_disables_venue_only(self):
        registry = _registry()
        registry.load(_config("brokenx"))

        assert await registry.start_all(timeout=1.0)

        health = registry.health()
        assert health["fakex"].enabled
        assert not health["brokenx"].enabled
        assert "exchange info unavailable" in health["brokenx"].last_error
        assert registry.names(enabled_only=True) == ["fakex"]

    @pytest.mark.asyncio
    async def test_start_timeout(self):
        registry = _registry()
        registry.load(_config("slowx"))

        assert not await registry.start_all(timeout=0.05)

        slow = registry.get("slowx")
        health = registry.health()
        assert health["fakex"].enabled
        assert not health["slowx"].enabled
        assert "start timed out" in health["slowx"].last_error
        assert not any(task.get_name() == "slowx-start" for task in asyncio.all_tasks())

        slow.release.set()
        await asyncio.sleep(0)
        assert not slow.is_enabled()
        await registry.shutdown()


class TestBarrier:
    @pytest.mark.asyncio
    async def test_empty_barrier_is_open(self):
        assert await StartBarrier([]).wait(timeout=0.01)

    @pytest.mark.asyncio
    async def test_barrier_waits_for_every_name(self):
        barrier = StartBarrier(["a", "B"])
        barrier.done("A")
        barrier.done("a")
        assert barrier.pending == {"b"}
        assert not await barrier.wait(timeout=0.01)
        barrier.done("b")
        assert await barrier.wait(timeout=0.01)


def test_register_venue_decorator():
    @register_venue("DecoratedX")
    class DecoratedVenue(FakeVenue):
        name = "decoratedx"

    try:
        assert "decoratedx" in registered_venues()
        assert venue_factory("DECORATEDX") is DecoratedVenue
        with pytest.raises(InvalidExchangeError, match="already registered"):
            register_venue("decoratedx")(DecoratedVenue)
    finally:
        unregister_venue("decoratedx")
    with pytest.raises(InvalidExchangeError):
        venue_factory("decoratedx")
