"""Account holdings models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import AssetClass
from .currency import Code


class Balance(BaseModel):
    """Balance of one currency; ``hold`` is reserved by open orders."""

    currency: Code
    total: Decimal = Decimal(0)
    hold: Decimal = Decimal(0)

    model_config = ConfigDict(frozen=True)

    @property
    def available(self) -> Decimal:
        return self.total - self.hold


class SubAccount(BaseModel):
    """Sub-account with a currency to balance map."""

    id: str = ""
    asset: AssetClass = AssetClass.SPOT
    balances: dict[Code, Balance] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_balances(
        cls, balances: list[Balance], *, id: str = "", asset: AssetClass = AssetClass.SPOT
    ) -> "SubAccount":
        return cls(id=id, asset=asset, balances={b.currency: b for b in balances})


class Holdings(BaseModel):
    """All sub-accounts of one venue."""

    venue: str = Field(..., min_length=1)
    accounts: list[SubAccount] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def total(self, currency: str) -> Decimal:
        """Sum a currency's total across sub-accounts."""
        code = Code(currency)
        return sum(
            (acct.balances[code].total for acct in self.accounts if code in acct.balances),
            Decimal(0),
        )
