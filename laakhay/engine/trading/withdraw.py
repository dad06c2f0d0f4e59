"""Withdraw manager and withdrawal event persistence.

Architecture:
    ``WithdrawManager.submit`` resolves the venue, checks that the venue's
    capability and permission bits allow the withdrawal kind, attaches a
    one-time password when the venue is configured with an OTP secret,
    resolves the bank account of fiat withdrawals, delegates to the venue
    and emits a WithdrawEvent to the repository.

Design Decisions:
    - Repository failures are logged; the withdrawal itself stands
    - A failed venue call is recorded with exchange id ``"error"`` and the
      error text as status, then re-raised unchanged
    - Dry-run mode skips the venue and the repository and answers with a
      fixed id and the ``"dryrun"`` status
    - The most recent events are cached in process by id, up to
      ``cache_size`` entries; lookups fall back to the repository

See Also:
    - models.withdraw: Request, event and bank account models
    - trading.banking: Bank account store
    - trading.otp: TOTP generation
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from ..core.enums import WithdrawType
from ..core.exceptions import (
    EngineError,
    InvalidExchangeError,
    NotFoundError,
    UnsupportedError,
    ValidationError,
)
from ..models.withdraw import (
    DRY_RUN_ID,
    STATUS_DRY_RUN,
    STATUS_ERROR,
    VenueWithdrawResponse,
    WithdrawEvent,
    WithdrawRequest,
)
from ..runtime.registry import VenueRegistry
from .banking import BankStore
from .otp import totp

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 100
DEFAULT_CACHE_SIZE = 256


class WithdrawRepository(Protocol):
    """Persistence collaborator for withdrawal events."""

    async def save(self, event: WithdrawEvent) -> None: ...

    async def get_by_id(self, event_id: str) -> WithdrawEvent | None: ...

    async def get_by_exchange(self, venue: str, limit: int) -> list[WithdrawEvent]: ...

    async def get_by_date(
        self, venue: str, start: datetime, end: datetime, limit: int
    ) -> list[WithdrawEvent]: ...

    async def get_by_exchange_id(self, venue: str, exchange_id: str) -> WithdrawEvent | None: ...


class InMemoryWithdrawRepository:
    """Repository keeping events in a dict, newest last."""

    def __init__(self) -> None:
        self._events: dict[str, WithdrawEvent] = {}

    async def save(self, event: WithdrawEvent) -> None:
        self._events[event.id] = event

    async def get_by_id(self, event_id: str) -> WithdrawEvent | None:
        return self._events.get(event_id)

    async def get_by_exchange(self, venue: str, limit: int) -> list[WithdrawEvent]:
        matches = [e for e in self._events.values() if e.venue.lower() == venue.lower()]
        return matches[-limit:] if limit > 0 else matches

    async def get_by_date(
        self, venue: str, start: datetime, end: datetime, limit: int
    ) -> list[WithdrawEvent]:
        matches = [
            e
            for e in self._events.values()
            if e.venue.lower() == venue.lower() and start <= e.created_at <= end
        ]
        return matches[:limit] if limit > 0 else matches

    async def get_by_exchange_id(self, venue: str, exchange_id: str) -> WithdrawEvent | None:
        for event in self._events.values():
            if event.venue.lower() == venue.lower() and event.exchange_id == exchange_id:
                return event
        return None


class WithdrawManager:
    """Submits withdrawals and keeps their events."""

    def __init__(
        self,
        registry: VenueRegistry,
        banks: BankStore | None = None,
        repository: WithdrawRepository | None = None,
        *,
        dry_run: bool = False,
        otp: Callable[[str], str] = totp,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self.registry = registry
        self.banks = banks or BankStore()
        self.repository: WithdrawRepository = repository or InMemoryWithdrawRepository()
        self.dry_run = dry_run
        self._otp = otp
        self._cache: OrderedDict[str, WithdrawEvent] = OrderedDict()
        self._cache_size = cache_size
        self._lock = threading.Lock()

    async def submit(self, request: WithdrawRequest) -> WithdrawEvent:
        """Validate, enrich and dispatch a withdrawal.

        Raises:
            InvalidExchangeError: If the venue is unknown or disabled
            UnsupportedError: If the venue cannot perform this withdrawal kind
            OTPRejectedError: If the OTP could not be generated or was refused
            NotFoundError: If the fiat bank account id is unknown
        """
        request.ensure_valid()
        venue = self.registry.get(request.venue)
        if not venue.is_enabled():
            raise InvalidExchangeError(f"exchange {venue.name} is not enabled")
        if not venue.features.supports_withdraw_type(request.type):
            raise UnsupportedError(
                f"{request.type} withdrawal unsupported by {venue.name}",
                venue=venue.name,
                capability=request.type,
            )
        request = request.model_copy(update={"venue": venue.name})
        request = self._attach_otp(venue, request)
        if request.type is not WithdrawType.CRYPTO:
            request = self._attach_bank(venue.name, request)

        if self.dry_run:
            now = datetime.now(UTC)
            return WithdrawEvent(
                id=DRY_RUN_ID,
                venue=venue.name,
                exchange_id=DRY_RUN_ID,
                status=STATUS_DRY_RUN,
                request=request,
                created_at=now,
                updated_at=now,
            )

        try:
            response = await self._dispatch(venue, request)
        except EngineError as exc:
            await self._record(request, exchange_id=STATUS_ERROR, status=str(exc))
            raise
        event = await self._record(request, exchange_id=response.id, status=response.status)
        logger.info(
            "Withdrawal submitted",
            extra={"venue": venue.name, "id": event.id, "exchange_id": response.id},
        )
        return event

    async def _dispatch(self, venue, request: WithdrawRequest) -> VenueWithdrawResponse:
        if request.type is WithdrawType.CRYPTO:
            return await venue.withdraw_crypto(request)
        if request.type is WithdrawType.FIAT_INTERNATIONAL:
            return await venue.withdraw_fiat_international(request)
        return await venue.withdraw_fiat(request)

    def _attach_otp(self, venue, request: WithdrawRequest) -> WithdrawRequest:
        if request.one_time_password:
            return request
        get_credentials = getattr(venue, "get_credentials", None)
        secret = get_credentials().otp_secret if get_credentials is not None else ""
        if not secret:
            return request
        return request.model_copy(update={"one_time_password": self._otp(secret)})

    def _attach_bank(self, venue: str, request: WithdrawRequest) -> WithdrawRequest:
        fiat = request.fiat
        if fiat is None:
            raise ValidationError("fiat withdrawal requires a bank account")
        bank = fiat.bank or self.banks.get_bank_account(fiat.bank_account_id)
        if not bank.supports_exchange(venue):
            raise ValidationError(f"bank account {bank.id} does not support exchange {venue}")
        if not bank.supports_currency(request.currency):
            raise ValidationError(
                f"bank account {bank.id} does not support currency {request.currency}"
            )
        bank.validate_for_withdrawal()
        return request.model_copy(
            update={"fiat": fiat.model_copy(update={"bank": bank, "bank_account_id": bank.id})}
        )

    async def _record(self, request: WithdrawRequest, *, exchange_id: str, status: str) -> WithdrawEvent:
        now = datetime.now(UTC)
        event = WithdrawEvent(
            id=str(uuid.uuid4()),
            venue=request.venue,
            exchange_id=exchange_id,
            status=status,
            request=request,
            created_at=now,
            updated_at=now,
        )
        self._remember(event)
        try:
            await self.repository.save(event)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to persist withdrawal event",
                extra={"venue": event.venue, "id": event.id, "error": str(exc)},
            )
        return event

    def _remember(self, event: WithdrawEvent) -> None:
        with self._lock:
            self._cache[event.id] = event
            self._cache.move_to_end(event.id)
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)

    # Lookups

    async def event_by_id(self, event_id: str) -> WithdrawEvent:
        with self._lock:
            event = self._cache.get(event_id)
            if event is not None:
                self._cache.move_to_end(event_id)
        if event is None:
            event = await self.repository.get_by_id(event_id)
        if event is None:
            raise NotFoundError(f"withdrawal {event_id} not found")
        return event

    async def events_by_exchange(self, venue: str, limit: int = DEFAULT_EVENT_LIMIT) -> list[WithdrawEvent]:
        self.registry.get(venue)
        return await self.repository.get_by_exchange(venue, limit)

    async def events_by_date(
        self, venue: str, start: datetime, end: datetime, limit: int = DEFAULT_EVENT_LIMIT
    ) -> list[WithdrawEvent]:
        if end < start:
            raise ValidationError("end date precedes start date")
        self.registry.get(venue)
        return await self.repository.get_by_date(venue, start, end, limit)

    async def event_by_exchange_id(self, venue: str, exchange_id: str) -> WithdrawEvent:
        self.registry.get(venue)
        event = await self.repository.get_by_exchange_id(venue, exchange_id)
        if event is None:
            raise NotFoundError(f"withdrawal {exchange_id} on {venue} not found")
        return event
