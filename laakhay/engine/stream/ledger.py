"""Subscriptions and the per-connection subscription ledger."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.enums import AssetClass
from ..models.currency import Pair


@dataclass(frozen=True)
class Subscription:
    """Identity of one stream subscription; equal tuples are the same subscription."""

    channel: str
    pair: Pair | None = None
    asset: AssetClass | None = None
    params: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def make(
        cls,
        channel: str,
        pair: Pair | None = None,
        asset: AssetClass | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> "Subscription":
        return cls(channel, pair, asset, tuple(sorted((params or {}).items())))

    def params_dict(self) -> dict[str, Any]:
        return dict(self.params)

    def __str__(self) -> str:
        parts = [self.channel]
        if self.pair is not None:
            parts.append(str(self.pair))
        if self.asset is not None:
            parts.append(str(self.asset))
        return ":".join(parts)


class SubscriptionLedger:
    """Ordered set of currently successful subscriptions.

    Written only by the connection manager; readers get copies.
    """

    def __init__(self) -> None:
        self._entries: dict[Subscription, None] = {}

    def add(self, subscription: Subscription) -> bool:
        """Returns False if the subscription was already present."""
        if subscription in self._entries:
            return False
        self._entries[subscription] = None
        return True

    def remove(self, subscription: Subscription) -> bool:
        """Returns False if the subscription was not present."""
        if subscription not in self._entries:
            return False
        del self._entries[subscription]
        return True

    def snapshot(self) -> list[Subscription]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, subscription: object) -> bool:
        return subscription in self._entries

    def __iter__(self) -> Iterator[Subscription]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._entries)
