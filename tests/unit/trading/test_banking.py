"""Unit tests for the bank account store."""

import pytest

from laakhay.engine.core.exceptions import NotFoundError, ValidationError
from laakhay.engine.models.withdraw import BankAccount
from laakhay.engine.trading.banking import BankStore


def _bank(account_id, **overrides) -> BankAccount:
    fields = {
        "id": account_id,
        "enabled": True,
        "bankName": "Test Bank",
        "accountName": "Satoshi",
        "accountNumber": "123456",
        "swiftCode": "TESTDE2X",
        "supportedCurrencies": "USD",
        "supportedExchanges": "fakex",
    }
    fields.update(overrides)
    return BankAccount.model_validate(fields)


def test_lookup_by_id():
    store = BankStore([_bank("one"), _bank("two")])
    assert store.get_bank_account("two").id == "two"
    assert len(store) == 2
    with pytest.raises(NotFoundError):
        store.get_bank_account("three")


def test_account_without_id_rejected():
    with pytest.raises(ValidationError):
        BankStore().add(_bank(""))


def test_for_exchange():
    store = BankStore(
        [
            _bank("usd"),
            _bank("eur", supportedCurrencies="EUR"),
            _bank("off", enabled=False),
            _bank("any", supportedExchanges="ALL", supportedCurrencies="USD,EUR"),
        ]
    )
    assert [a.id for a in store.for_exchange("FAKEX")] == ["usd", "eur", "any"]
    assert [a.id for a in store.for_exchange("fakex", "eur")] == ["eur", "any"]
    assert [a.id for a in store.for_exchange("kraken")] == ["any"]
    assert [a.id for a in store.accounts(enabled_only=True)] == ["usd", "eur", "any"]
