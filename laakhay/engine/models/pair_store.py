"""Per-venue pair stores.

A PairManager holds one PairStore per asset class. Enabled pairs are always a
subset of available pairs: enabling an unknown pair is rejected and refreshing
the available list prunes pairs the venue delisted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..core.enums import AssetClass, PairsState
from ..core.exceptions import InvalidAssetError, InvalidPairError
from .currency import Pair, PairFormat, dedupe_pairs

logger = logging.getLogger(__name__)


@dataclass
class PairStore:
    """Pairs of one asset class on one venue."""

    asset: AssetClass
    available: list[Pair] = field(default_factory=list)
    enabled: list[Pair] = field(default_factory=list)
    request_format: PairFormat | None = None
    config_format: PairFormat | None = None
    asset_enabled: PairsState = PairsState.UNSET

    @property
    def is_enabled(self) -> bool:
        # Unset falls back to enabled so that legacy configs keep working.
        return self.asset_enabled is not PairsState.DISABLED


@dataclass(frozen=True)
class PairDifference:
    """Outcome of refreshing the available pairs of a store."""

    added: tuple[Pair, ...] = ()
    removed: tuple[Pair, ...] = ()
    pruned_enabled: tuple[Pair, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class PairManager:
    """Thread-safe collection of pair stores keyed by asset class."""

    def __init__(
        self,
        *,
        request_format: PairFormat | None = None,
        config_format: PairFormat | None = None,
    ) -> None:
        self.request_format = request_format or PairFormat()
        self.config_format = config_format or PairFormat(delimiter="-")
        self._stores: dict[AssetClass, PairStore] = {}
        self._lock = threading.Lock()
        self.last_pairs_update: datetime | None = None

    def add_store(self, store: PairStore) -> None:
        store.enabled = self._subset(store.available, store.enabled, store.asset)
        with self._lock:
            self._stores[store.asset] = store

    def get_asset_types(self, *, enabled_only: bool = False) -> list[AssetClass]:
        with self._lock:
            return [
                asset
                for asset, store in self._stores.items()
                if not enabled_only or store.is_enabled
            ]

    def supports_asset(self, asset: AssetClass) -> bool:
        with self._lock:
            return asset in self._stores

    def is_asset_enabled(self, asset: AssetClass) -> bool:
        with self._lock:
            store = self._stores.get(asset)
            return store is not None and store.is_enabled

    def set_asset_enabled(self, asset: AssetClass, enabled: bool) -> None:
        with self._lock:
            store = self._store(asset)
            store.asset_enabled = PairsState.from_bool(enabled)

    def get_store(self, asset: AssetClass) -> PairStore:
        with self._lock:
            return self._store(asset)

    def get_available_pairs(self, asset: AssetClass) -> list[Pair]:
        with self._lock:
            return list(self._store(asset, require_enabled=True).available)

    def get_enabled_pairs(self, asset: AssetClass) -> list[Pair]:
        with self._lock:
            return list(self._store(asset, require_enabled=True).enabled)

    def get_request_format(self, asset: AssetClass) -> PairFormat:
        with self._lock:
            return self._store(asset).request_format or self.request_format

    def get_config_format(self, asset: AssetClass) -> PairFormat:
        with self._lock:
            return self._store(asset).config_format or self.config_format

    def set_pairs(self, pairs: Iterable[Pair], asset: AssetClass, *, enabled: bool) -> None:
        """Replace the enabled or available list of an asset class.

        Raises:
            InvalidPairError: If an enabled pair is not available
        """
        pairs = dedupe_pairs(pairs)
        with self._lock:
            store = self._stores.get(asset)
            if store is None:
                store = PairStore(asset=asset)
                self._stores[asset] = store
            if enabled:
                store.enabled = self._subset(store.available, pairs, asset, strict=True)
            else:
                store.available = pairs
                store.enabled = self._subset(pairs, store.enabled, asset)

    def update_pairs(self, available: Iterable[Pair], asset: AssetClass) -> PairDifference:
        """Refresh the available pairs and prune delisted enabled pairs."""
        new_available = dedupe_pairs(available)
        with self._lock:
            store = self._stores.get(asset)
            if store is None:
                store = PairStore(asset=asset)
                self._stores[asset] = store
            old = set(store.available)
            new = set(new_available)
            kept_enabled = [pair for pair in store.enabled if pair in new]
            diff = PairDifference(
                added=tuple(pair for pair in new_available if pair not in old),
                removed=tuple(pair for pair in store.available if pair not in new),
                pruned_enabled=tuple(pair for pair in store.enabled if pair not in new),
            )
            store.available = new_available
            store.enabled = kept_enabled
            self.last_pairs_update = datetime.now(UTC)

        if diff.pruned_enabled:
            logger.warning(
                "Enabled pairs delisted by venue",
                extra={
                    "event": "pairs_pruned",
                    "asset": str(asset),
                    "pairs": [str(pair) for pair in diff.pruned_enabled],
                },
            )
        return diff

    def is_pair_enabled(self, pair: Pair, asset: AssetClass) -> bool:
        with self._lock:
            store = self._stores.get(asset)
            return store is not None and store.is_enabled and pair in store.enabled

    def _store(self, asset: AssetClass, *, require_enabled: bool = False) -> PairStore:
        store = self._stores.get(asset)
        if store is None:
            raise InvalidAssetError(f"asset class {asset} not supported")
        if require_enabled and not store.is_enabled:
            raise InvalidAssetError(f"asset class {asset} is disabled")
        return store

    @staticmethod
    def _subset(
        available: list[Pair],
        enabled: Iterable[Pair],
        asset: AssetClass,
        *,
        strict: bool = False,
    ) -> list[Pair]:
        allowed = set(available)
        result: list[Pair] = []
        for pair in dedupe_pairs(enabled):
            if pair in allowed:
                result.append(pair)
            elif strict:
                raise InvalidPairError(f"{pair} is not an available {asset} pair")
        return result
