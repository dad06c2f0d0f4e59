"""Account holdings cache keyed by venue."""

from __future__ import annotations

import threading

from ..core.exceptions import NotFoundError, ValidationError
from ..models.account import Holdings


class AccountCache:
    """Latest holdings per venue; ``process`` overwrites."""

    def __init__(self) -> None:
        self._holdings: dict[str, Holdings] = {}
        self._lock = threading.Lock()

    def process(self, holdings: Holdings) -> Holdings:
        if not holdings.venue:
            raise ValidationError("account holdings venue name unset")
        with self._lock:
            self._holdings[holdings.venue.lower()] = holdings
        return holdings

    def get(self, venue: str) -> Holdings:
        """Raises NotFoundError when the venue has no cached holdings."""
        with self._lock:
            holdings = self._holdings.get(venue.lower())
        if holdings is None:
            raise NotFoundError(f"no account holdings for {venue}")
        return holdings

    def clear(self, venue: str | None = None) -> None:
        with self._lock:
            if venue is None:
                self._holdings.clear()
            else:
                self._holdings.pop(venue.lower(), None)
