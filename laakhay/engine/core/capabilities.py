"""Venue capability bit-fields.

Architecture:
    Every venue declares a Features value. Cross-cutting operations check the
    relevant capability bit first and raise UnsupportedError when it is absent,
    instead of returning empty data.

Key Types:
    - Capability: REST and websocket feature bits
    - WithdrawPermission: Withdrawal permission bits
    - Features: Per-venue declaration (capabilities, permissions, kline support)

See Also:
    - core.base.VenueBase.require: The capability gate used by venues
    - trading.withdraw: Checks withdraw bits per withdrawal kind
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

from .enums import Interval, WithdrawType
from .exceptions import UnsupportedError


class Capability(IntFlag):
    """Feature bits a venue may declare."""

    NONE = 0
    TICKER_FETCHING = 1 << 0
    TICKER_BATCHING = 1 << 1
    ORDERBOOK_FETCHING = 1 << 2
    TRADE_FETCHING = 1 << 3
    KLINE_FETCHING = 1 << 4
    ACCOUNT_INFO = 1 << 5
    SUBMIT_ORDER = 1 << 6
    MODIFY_ORDER = 1 << 7
    CANCEL_ORDER = 1 << 8
    CANCEL_ORDERS = 1 << 9
    GET_ORDER = 1 << 10
    GET_ORDERS = 1 << 11
    DEPOSIT_ADDRESS = 1 << 12
    CRYPTO_WITHDRAWAL = 1 << 13
    FIAT_WITHDRAWAL = 1 << 14
    FUNDING_HISTORY = 1 << 15
    TRADE_FEE = 1 << 16
    WEBSOCKET = 1 << 17
    WEBSOCKET_AUTHENTICATED = 1 << 18
    WEBSOCKET_TICKER = 1 << 19
    WEBSOCKET_ORDERBOOK = 1 << 20
    WEBSOCKET_TRADES = 1 << 21
    WEBSOCKET_ACCOUNT = 1 << 22
    WEBSOCKET_ORDERS = 1 << 23


class WithdrawPermission(IntFlag):
    """Withdrawal permission bits."""

    NONE = 0
    AUTO_WITHDRAW_CRYPTO = 1 << 0
    AUTO_WITHDRAW_CRYPTO_WITH_API_PERMISSION = 1 << 1
    AUTO_WITHDRAW_CRYPTO_WITH_SETUP = 1 << 2
    WITHDRAW_CRYPTO_WITH_2FA = 1 << 3
    WITHDRAW_CRYPTO_WITH_SMS = 1 << 4
    WITHDRAW_CRYPTO_WITH_EMAIL = 1 << 5
    WITHDRAW_CRYPTO_WITH_WEBSITE_APPROVAL = 1 << 6
    WITHDRAW_CRYPTO_WITH_API_PERMISSION = 1 << 7
    AUTO_WITHDRAW_FIAT = 1 << 8
    AUTO_WITHDRAW_FIAT_WITH_API_PERMISSION = 1 << 9
    AUTO_WITHDRAW_FIAT_WITH_SETUP = 1 << 10
    WITHDRAW_FIAT_WITH_2FA = 1 << 11
    WITHDRAW_FIAT_WITH_SMS = 1 << 12
    WITHDRAW_FIAT_WITH_EMAIL = 1 << 13
    WITHDRAW_FIAT_WITH_WEBSITE_APPROVAL = 1 << 14
    WITHDRAW_FIAT_WITH_API_PERMISSION = 1 << 15
    WITHDRAW_CRYPTO_VIA_WEBSITE_ONLY = 1 << 16
    WITHDRAW_FIAT_VIA_WEBSITE_ONLY = 1 << 17
    NO_FIAT_WITHDRAWALS = 1 << 18


_PERMISSION_TEXT = {
    WithdrawPermission.AUTO_WITHDRAW_CRYPTO: "AUTO WITHDRAW CRYPTO",
    WithdrawPermission.AUTO_WITHDRAW_CRYPTO_WITH_API_PERMISSION: "AUTO WITHDRAW CRYPTO WITH API PERMISSION",
    WithdrawPermission.AUTO_WITHDRAW_CRYPTO_WITH_SETUP: "AUTO WITHDRAW CRYPTO WITH SETUP",
    WithdrawPermission.WITHDRAW_CRYPTO_WITH_2FA: "WITHDRAW CRYPTO WITH 2FA",
    WithdrawPermission.WITHDRAW_CRYPTO_WITH_SMS: "WITHDRAW CRYPTO WITH SMS",
    WithdrawPermission.WITHDRAW_CRYPTO_WITH_EMAIL: "WITHDRAW CRYPTO WITH EMAIL",
    WithdrawPermission.WITHDRAW_CRYPTO_WITH_WEBSITE_APPROVAL: "WITHDRAW CRYPTO WITH WEBSITE APPROVAL",
    WithdrawPermission.WITHDRAW_CRYPTO_WITH_API_PERMISSION: "WITHDRAW CRYPTO WITH API PERMISSION",
    WithdrawPermission.AUTO_WITHDRAW_FIAT: "AUTO WITHDRAW FIAT",
    WithdrawPermission.AUTO_WITHDRAW_FIAT_WITH_API_PERMISSION: "AUTO WITHDRAW FIAT WITH API PERMISSION",
    WithdrawPermission.AUTO_WITHDRAW_FIAT_WITH_SETUP: "AUTO WITHDRAW FIAT WITH SETUP",
    WithdrawPermission.WITHDRAW_FIAT_WITH_2FA: "WITHDRAW FIAT WITH 2FA",
    WithdrawPermission.WITHDRAW_FIAT_WITH_SMS: "WITHDRAW FIAT WITH SMS",
    WithdrawPermission.WITHDRAW_FIAT_WITH_EMAIL: "WITHDRAW FIAT WITH EMAIL",
    WithdrawPermission.WITHDRAW_FIAT_WITH_WEBSITE_APPROVAL: "WITHDRAW FIAT WITH WEBSITE APPROVAL",
    WithdrawPermission.WITHDRAW_FIAT_WITH_API_PERMISSION: "WITHDRAW FIAT WITH API PERMISSION",
    WithdrawPermission.WITHDRAW_CRYPTO_VIA_WEBSITE_ONLY: "WITHDRAW CRYPTO VIA WEBSITE ONLY",
    WithdrawPermission.WITHDRAW_FIAT_VIA_WEBSITE_ONLY: "WITHDRAW FIAT VIA WEBSITE ONLY",
    WithdrawPermission.NO_FIAT_WITHDRAWALS: "NO FIAT WITHDRAWAL",
}

_CRYPTO_PERMISSIONS = (
    WithdrawPermission.AUTO_WITHDRAW_CRYPTO
    | WithdrawPermission.AUTO_WITHDRAW_CRYPTO_WITH_API_PERMISSION
    | WithdrawPermission.AUTO_WITHDRAW_CRYPTO_WITH_SETUP
    | WithdrawPermission.WITHDRAW_CRYPTO_WITH_2FA
    | WithdrawPermission.WITHDRAW_CRYPTO_WITH_SMS
    | WithdrawPermission.WITHDRAW_CRYPTO_WITH_EMAIL
    | WithdrawPermission.WITHDRAW_CRYPTO_WITH_WEBSITE_APPROVAL
    | WithdrawPermission.WITHDRAW_CRYPTO_WITH_API_PERMISSION
)

_FIAT_PERMISSIONS = (
    WithdrawPermission.AUTO_WITHDRAW_FIAT
    | WithdrawPermission.AUTO_WITHDRAW_FIAT_WITH_API_PERMISSION
    | WithdrawPermission.AUTO_WITHDRAW_FIAT_WITH_SETUP
    | WithdrawPermission.WITHDRAW_FIAT_WITH_2FA
    | WithdrawPermission.WITHDRAW_FIAT_WITH_SMS
    | WithdrawPermission.WITHDRAW_FIAT_WITH_EMAIL
    | WithdrawPermission.WITHDRAW_FIAT_WITH_WEBSITE_APPROVAL
    | WithdrawPermission.WITHDRAW_FIAT_WITH_API_PERMISSION
)


def format_withdraw_permissions(permissions: WithdrawPermission) -> str:
    """Render a permission mask as a human readable, comma separated list."""
    if not permissions:
        return "NONE, WEBSITE ONLY"
    names = [text for flag, text in _PERMISSION_TEXT.items() if permissions & flag]
    return ", ".join(names)


@dataclass
class Features:
    """Capabilities declared by a venue.

    ``international_fiat`` enables WithdrawType.FIAT_INTERNATIONAL on top of
    the fiat permission bits.
    """

    capabilities: Capability = Capability.NONE
    withdraw_permissions: WithdrawPermission = WithdrawPermission.NONE
    international_fiat: bool = False
    intervals: frozenset[Interval] = field(default_factory=frozenset)
    kline_result_limit: int = 0

    def supports(self, capability: Capability) -> bool:
        return (self.capabilities & capability) == capability

    def supports_withdraw_permissions(self, permissions: WithdrawPermission) -> bool:
        return (self.withdraw_permissions & permissions) == permissions

    def supports_interval(self, interval: Interval) -> bool:
        return interval in self.intervals

    def supports_withdraw_type(self, kind: WithdrawType) -> bool:
        """Whether the declared permissions allow the given withdrawal kind."""
        if kind is WithdrawType.CRYPTO:
            return self.supports(Capability.CRYPTO_WITHDRAWAL) and bool(
                self.withdraw_permissions & _CRYPTO_PERMISSIONS
            )
        if self.withdraw_permissions & WithdrawPermission.NO_FIAT_WITHDRAWALS:
            return False
        fiat_ok = self.supports(Capability.FIAT_WITHDRAWAL) and bool(
            self.withdraw_permissions & _FIAT_PERMISSIONS
        )
        if kind is WithdrawType.FIAT_INTERNATIONAL:
            return fiat_ok and self.international_fiat
        return fiat_ok

    def require(self, capability: Capability, *, venue: str | None = None) -> None:
        """Raise UnsupportedError unless every bit of ``capability`` is declared."""
        if not self.supports(capability):
            name = capability.name or str(int(capability))
            where = f" by {venue}" if venue else ""
            raise UnsupportedError(
                f"{name.lower()} unsupported{where}", venue=venue, capability=capability
            )

    def require_interval(self, interval: Interval, *, venue: str | None = None) -> None:
        if not self.supports_interval(interval):
            raise UnsupportedError(
                f"{interval.word} interval unsupported by exchange",
                venue=venue,
                capability=interval,
            )
