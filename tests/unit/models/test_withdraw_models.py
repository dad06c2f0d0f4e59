"""Unit tests for withdrawal requests and bank accounts."""

from decimal import Decimal

import pytest

from laakhay.engine.core.enums import WithdrawType
from laakhay.engine.core.exceptions import ValidationError
from laakhay.engine.models.withdraw import (
    BankAccount,
    CryptoWithdrawDetails,
    FiatWithdrawDetails,
    WithdrawRequest,
)


def _bank(**overrides) -> BankAccount:
    fields = {
        "id": "bank-1",
        "enabled": True,
        "bankName": "Test Bank",
        "accountName": "Satoshi",
        "accountNumber": "123456",
        "swiftCode": "TESTDE2X",
        "bankCountry": "DE",
        "supportedCurrencies": "USD, EUR",
        "supportedExchanges": "fakex,other",
    }
    fields.update(overrides)
    return BankAccount.model_validate(fields)


def test_crypto_request_requires_address():
    request = WithdrawRequest(currency="btc", amount=Decimal("1"), type=WithdrawType.CRYPTO)
    with pytest.raises(ValidationError, match="address"):
        request.ensure_valid()


def test_request_amount_must_be_positive():
    request = WithdrawRequest(
        currency="BTC",
        amount=Decimal(0),
        type=WithdrawType.CRYPTO,
        crypto=CryptoWithdrawDetails(address="bc1q"),
    )
    with pytest.raises(ValidationError, match="invalid request amount"):
        request.ensure_valid()


def test_fiat_request_requires_bank():
    request = WithdrawRequest(currency="USD", amount=Decimal("10"), type=WithdrawType.FIAT)
    with pytest.raises(ValidationError, match="bank account"):
        request.ensure_valid()
    WithdrawRequest(
        currency="USD",
        amount=Decimal("10"),
        type=WithdrawType.FIAT,
        fiat=FiatWithdrawDetails(bank_account_id="bank-1"),
    ).ensure_valid()


def test_bank_account_support_lists():
    bank = _bank()
    assert bank.supports_currency("usd")
    assert not bank.supports_currency("AUD")
    assert bank.supports_exchange("FakeX")
    assert not bank.supports_exchange("kraken")
    assert _bank(supportedExchanges="ALL").supports_exchange("kraken")


def test_bank_account_validation():
    _bank().validate_for_withdrawal()
    with pytest.raises(ValidationError, match="disabled"):
        _bank(enabled=False).validate_for_withdrawal()
    with pytest.raises(ValidationError, match="bsb"):
        _bank(bankCountry="AU").validate_for_withdrawal()
    with pytest.raises(ValidationError, match="swift"):
        _bank(swiftCode="").validate_for_withdrawal()
    with pytest.raises(ValidationError, match="iban or account number"):
        _bank(accountNumber="").validate_for_withdrawal()
