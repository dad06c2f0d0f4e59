"""Withdrawal request, bank account and event models.

BankAccount keeps the legacy camelCase configuration names as aliases so the
same model parses config documents and is attached to fiat requests.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import WithdrawType
from ..core.exceptions import ValidationError
from .currency import Code

DRY_RUN_ID = "3e7e2c25-5a0b-429b-95a1-0960079dce56"
STATUS_ERROR = "error"
STATUS_DRY_RUN = "dryrun"


class BankAccount(BaseModel):
    """Client bank account used for fiat withdrawals."""

    id: str = Field("", alias="id")
    enabled: bool = Field(False, alias="enabled")
    bank_name: str = Field("", alias="bankName")
    bank_address: str = Field("", alias="bankAddress")
    bank_postal_code: str = Field("", alias="bankPostalCode")
    bank_postal_city: str = Field("", alias="bankPostalCity")
    bank_country: str = Field("", alias="bankCountry")
    account_name: str = Field("", alias="accountName")
    account_number: str = Field("", alias="accountNumber")
    swift_code: str = Field("", alias="swiftCode")
    iban: str = Field("", alias="iban")
    bsb_number: str = Field("", alias="bsbNumber")
    supported_currencies: str = Field("", alias="supportedCurrencies")
    supported_exchanges: str = Field("", alias="supportedExchanges")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def supports_currency(self, currency: str) -> bool:
        wanted = currency.strip().upper()
        return wanted in {c.strip().upper() for c in self.supported_currencies.split(",") if c}

    def supports_exchange(self, venue: str) -> bool:
        if self.supported_exchanges.strip().upper() == "ALL":
            return True
        wanted = venue.strip().lower()
        return wanted in {e.strip().lower() for e in self.supported_exchanges.split(",") if e}

    def validate_for_withdrawal(self) -> None:
        """Check that the account carries routing details.

        Raises:
            ValidationError: If a required field is missing
        """
        if not self.enabled:
            raise ValidationError(f"bank account {self.id} is disabled")
        if not self.account_name or not self.bank_name:
            raise ValidationError("bank account name and bank name must be set")
        if not (self.iban or self.account_number):
            raise ValidationError("either iban or account number must be set")
        if self.bank_country.upper() == "AU" and not self.bsb_number:
            raise ValidationError("bsb number must be set for Australian bank accounts")
        if not self.iban and not self.swift_code and self.bank_country.upper() != "AU":
            raise ValidationError("swift code must be set when iban is not provided")


class CryptoWithdrawDetails(BaseModel):
    address: str = ""
    address_tag: str = ""
    fee_amount: Decimal = Decimal(0)

    model_config = ConfigDict(frozen=True)


class FiatWithdrawDetails(BaseModel):
    bank_account_id: str = ""
    bank: BankAccount | None = None
    is_express_wire: bool = False
    requires_intermediary_bank: bool = False
    wire_currency: str = ""

    model_config = ConfigDict(frozen=True)


class WithdrawRequest(BaseModel):
    """Normalized withdrawal request."""

    venue: str = ""
    currency: Code
    amount: Decimal
    type: WithdrawType
    description: str = ""
    one_time_password: str = ""
    trade_password: str = ""
    crypto: CryptoWithdrawDetails | None = None
    fiat: FiatWithdrawDetails | None = None

    model_config = ConfigDict(frozen=True)

    def ensure_valid(self) -> None:
        """Raises ValidationError naming the first problem found."""
        if self.currency.is_empty:
            raise ValidationError("currency cannot be empty")
        if self.amount <= 0:
            raise ValidationError("invalid request amount")
        if self.type is WithdrawType.CRYPTO:
            if self.crypto is None or not self.crypto.address:
                raise ValidationError("crypto withdrawal requires an address")
            if self.crypto.fee_amount < 0:
                raise ValidationError("fee amount cannot be negative")
        else:
            if self.fiat is None or not (self.fiat.bank_account_id or self.fiat.bank):
                raise ValidationError("fiat withdrawal requires a bank account")


class VenueWithdrawResponse(BaseModel):
    """Identifier and status returned by the venue."""

    id: str = ""
    status: str = ""

    model_config = ConfigDict(frozen=True)


class WithdrawEvent(BaseModel):
    """Persisted withdrawal record.

    ``exchange_id`` is the venue-side identifier, or ``"error"`` when the venue
    call failed, in which case ``status`` carries the error text.
    """

    id: str
    venue: str
    exchange_id: str = ""
    status: str = ""
    request: WithdrawRequest
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def failed(self) -> bool:
        return self.exchange_id == STATUS_ERROR
