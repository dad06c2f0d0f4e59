"""Client bank accounts used for fiat withdrawals."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from ..core.exceptions import NotFoundError, ValidationError
from ..models.withdraw import BankAccount


class BankStore:
    """Bank accounts from configuration, looked up by id."""

    def __init__(self, accounts: Iterable[BankAccount] = ()) -> None:
        self._accounts: dict[str, BankAccount] = {}
        self._lock = threading.Lock()
        for account in accounts:
            self.add(account)

    def add(self, account: BankAccount) -> None:
        if not account.id:
            raise ValidationError("bank account id must be set")
        with self._lock:
            self._accounts[account.id] = account

    def get_bank_account(self, account_id: str) -> BankAccount:
        """Raises NotFoundError for unknown ids."""
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"bank account {account_id!r} not found")
        return account

    def accounts(self, *, enabled_only: bool = False) -> list[BankAccount]:
        with self._lock:
            values = list(self._accounts.values())
        return [a for a in values if a.enabled or not enabled_only]

    def for_exchange(self, venue: str, currency: str | None = None) -> list[BankAccount]:
        """Enabled accounts usable with ``venue`` and, if given, ``currency``."""
        return [
            account
            for account in self.accounts(enabled_only=True)
            if account.supports_exchange(venue)
            and (currency is None or account.supports_currency(currency))
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
