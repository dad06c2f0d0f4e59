"""Funding history and fee query models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..core.enums import AssetClass
from .currency import Code, Pair


class FeeType(str, Enum):
    """Kinds of fee a venue can be asked to compute."""

    CRYPTOCURRENCY_TRADE = "crypto_trade"
    CRYPTOCURRENCY_DEPOSIT = "crypto_deposit"
    CRYPTOCURRENCY_WITHDRAWAL = "crypto_withdrawal"
    INTERNATIONAL_BANK_DEPOSIT = "international_bank_deposit"
    INTERNATIONAL_BANK_WITHDRAWAL = "international_bank_withdrawal"
    OFFLINE_TRADE = "offline_trade"

    def __str__(self) -> str:
        return self.value


class FeeBuilder(BaseModel):
    """Inputs for a fee estimate."""

    fee_type: FeeType
    pair: Pair | None = None
    asset: AssetClass = AssetClass.SPOT
    is_maker: bool = False
    purchase_price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    fiat_currency: str = ""
    bank_transaction_type: str = ""

    model_config = ConfigDict(frozen=True)


class FundHistory(BaseModel):
    """Deposit or withdrawal reported by a venue."""

    venue: str
    status: str = ""
    transfer_id: str = ""
    description: str = ""
    timestamp: datetime | None = None
    currency: Code
    amount: Decimal = Decimal(0)
    fee: Decimal = Decimal(0)
    transfer_type: str = ""
    crypto_to_address: str = ""
    crypto_from_address: str = ""
    crypto_tx_id: str = ""
    bank_to: str = ""
    bank_from: str = ""

    model_config = ConfigDict(frozen=True)
