"""Request dispatcher.

Architecture:
    Every outbound HTTP call of a venue goes through ``Requester.send``:
    1. Rate limiter acquisition for the request's endpoint class
    2. Nonce generation (monotonic per credential) when enabled
    3. Auth computation delegated to the venue's signer hook
    4. Send through a swappable transport (aiohttp, recording, fakes)
    5. Decode the body (JSON, text or bytes), optionally into a pydantic model

Failure Semantics:
    - Network failures and timeouts raise TransportError (transient)
    - 5xx raises VenueError(transient=True); 429 raises RateLimitError
    - 401/403 raise AuthRejectedError; other 4xx raise terminal VenueError
    - Malformed bodies raise DecodeError
    The dispatcher never retries; callers decide using is_transient_error.

See Also:
    - runtime.limiter: Token buckets acquired before dispatch
    - utils.retry: Caller-side retry of transient errors
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol
from urllib.parse import urlencode

import aiohttp
import pydantic

from ..core.exceptions import (
    AuthRejectedError,
    AuthRequiredError,
    DecodeError,
    RateLimitError,
    TransportError,
    VenueError,
)
from .limiter import DEFAULT_ENDPOINT, RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 15.0


@dataclass(frozen=True)
class Credentials:
    key: str = ""
    secret: str = ""
    client_id: str = ""
    otp_secret: str = ""
    pem_key: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.key and self.secret)


@dataclass
class Request:
    """Descriptor of one venue call."""

    method: str
    path: str
    params: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    auth_required: bool = False
    nonce_enabled: bool = False
    endpoint: str = DEFAULT_ENDPOINT
    decode: Literal["json", "text", "bytes"] = "json"
    result_type: type[pydantic.BaseModel] | None = None


@dataclass
class PreparedRequest:
    """Request as it goes over the wire; auth hooks may rewrite any part."""

    method: str
    url: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    nonce: int | None = None


@dataclass(frozen=True)
class TransportResponse:
    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)


class HTTPTransport(Protocol):
    """Anything able to perform a prepared request."""

    async def send(self, request: PreparedRequest, timeout: float) -> TransportResponse: ...

    async def close(self) -> None: ...


AuthHook = Callable[[PreparedRequest, Credentials], PreparedRequest]
ErrorCheck = Callable[[Any], "VenueError | None"]


class Nonce:
    """Strictly increasing integer nonce, seeded from the clock in microseconds."""

    def __init__(self, start: int | None = None) -> None:
        self._last = start - 1 if start is not None else 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            candidate = time.time_ns() // 1_000
            self._last = max(self._last + 1, candidate)
            return self._last

    @property
    def last(self) -> int:
        return self._last


class AiohttpTransport:
    """aiohttp backed transport with a lazily created session."""

    def __init__(self, user_agent: str = "") -> None:
        self.user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create session."""
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    async def send(self, request: PreparedRequest, timeout: float) -> TransportResponse:
        try:
            async with self.session.request(
                request.method,
                request.url,
                params=request.params or None,
                headers=request.headers,
                data=request.body,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                body = await response.read()
                return TransportResponse(
                    status=response.status, body=body, headers=dict(response.headers)
                )
        except asyncio.TimeoutError as exc:
            raise TransportError(f"{request.method} {request.path} timed out after {timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{request.method} {request.path} failed: {exc}") from exc

    async def close(self) -> None:
        """Close session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


@dataclass
class RecordedExchange:
    request: PreparedRequest
    response: TransportResponse | None = None
    error: BaseException | None = None
    elapsed: float = 0.0


class RecordingTransport:
    """Wraps another transport and keeps every request/response pair."""

    def __init__(self, inner: HTTPTransport, *, limit: int | None = None) -> None:
        self.inner = inner
        self.limit = limit
        self.records: list[RecordedExchange] = []

    async def send(self, request: PreparedRequest, timeout: float) -> TransportResponse:
        started = time.monotonic()
        record = RecordedExchange(request=request)
        try:
            record.response = await self.inner.send(request, timeout)
            return record.response
        except Exception as exc:
            record.error = exc
            raise
        finally:
            record.elapsed = time.monotonic() - started
            self.records.append(record)
            if self.limit is not None and len(self.records) > self.limit:
                del self.records[0]

    async def close(self) -> None:
        await self.inner.close()


class Requester:
    """Uniform HTTP send for one venue."""

    def __init__(
        self,
        venue: str,
        base_url: str = "",
        *,
        transport: HTTPTransport | None = None,
        limiter: RateLimiter | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        auth: AuthHook | None = None,
        credentials: Callable[[], Credentials] | None = None,
        error_check: ErrorCheck | None = None,
        verbose: bool = False,
    ) -> None:
        self.venue = venue
        self.base_url = base_url.rstrip("/")
        self.transport: HTTPTransport = transport or AiohttpTransport()
        self.limiter = limiter or RateLimiter(venue)
        self.timeout = timeout
        self.auth = auth
        self.credentials = credentials or (lambda: Credentials())
        self.error_check = error_check
        self.verbose = verbose
        self._nonces: dict[str, Nonce] = {}
        self._nonce_lock = threading.Lock()

    def nonce_for(self, key: str) -> Nonce:
        with self._nonce_lock:
            nonce = self._nonces.get(key)
            if nonce is None:
                nonce = Nonce()
                self._nonces[key] = nonce
            return nonce

    async def send(self, request: Request) -> Any:
        """Dispatch a request and decode its body."""
        await self.limiter.acquire(request.endpoint)

        creds = self.credentials()
        if request.auth_required and (self.auth is None or not creds.is_set):
            raise AuthRequiredError(f"{self.venue} {request.path} requires credentials")

        prepared = self._prepare(request)
        if request.nonce_enabled:
            prepared.nonce = self.nonce_for(creds.key).next()
        if request.auth_required:
            assert self.auth is not None
            prepared = self.auth(prepared, creds)

        if self.verbose:
            logger.debug(
                "Sending request",
                extra={"venue": self.venue, "method": prepared.method, "url": prepared.url},
            )
        response = await self.transport.send(prepared, self.timeout)
        if self.verbose:
            logger.debug(
                "Received response",
                extra={
                    "venue": self.venue,
                    "status": response.status,
                    "body": response.body[:512].decode("utf-8", "replace"),
                },
            )

        self._raise_for_status(prepared, response)
        payload = self._decode(request, response)
        if self.error_check is not None:
            error = self.error_check(payload)
            if error is not None:
                raise error
        if request.result_type is not None:
            try:
                return request.result_type.model_validate(payload)
            except pydantic.ValidationError as exc:
                raise DecodeError(f"{self.venue} {request.path} result invalid: {exc}", payload) from exc
        return payload

    async def close(self) -> None:
        await self.transport.close()

    def _prepare(self, request: Request) -> PreparedRequest:
        path = request.path if request.path.startswith("/") or not request.path else f"/{request.path}"
        url = request.path if request.path.startswith("http") else f"{self.base_url}{path}"
        body: bytes | None
        headers = dict(request.headers)
        if request.body is None:
            body = None
        elif isinstance(request.body, bytes):
            body = request.body
        elif isinstance(request.body, str):
            body = request.body.encode("utf-8")
        else:
            body = json.dumps(request.body, default=str).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        return PreparedRequest(
            method=request.method.upper(),
            url=url,
            path=path,
            params=dict(request.params or {}),
            headers=headers,
            body=body,
        )

    def _raise_for_status(self, request: PreparedRequest, response: TransportResponse) -> None:
        status = response.status
        if status < 400:
            return
        code, message = _error_fields(response.body)
        text = message or response.body[:256].decode("utf-8", "replace")
        where = f"{self.venue} {request.method} {request.path}"
        if status == 429:
            raise RateLimitError(
                f"{where} rate limited: {text}",
                venue=self.venue,
                retry_after=_retry_after(response.headers),
            )
        if status in (401, 403):
            raise AuthRejectedError(f"{where} rejected credentials ({status}): {text}")
        raise VenueError(
            f"{where} failed ({status}): {text}",
            venue=self.venue,
            code=code,
            status_code=status,
            transient=status >= 500,
        )

    def _decode(self, request: Request, response: TransportResponse) -> Any:
        if request.decode == "bytes":
            return response.body
        try:
            text = response.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"{self.venue} {request.path} body is not utf-8", response.body) from exc
        if request.decode == "text":
            return text
        if not text.strip():
            raise DecodeError(f"{self.venue} {request.path} returned an empty body", text)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"{self.venue} {request.path} returned malformed JSON: {exc}", text) from exc


def hmac_signature(
    secret: str, payload: str | bytes, *, digest: str = "sha256", encoding: str = "hex"
) -> str:
    """HMAC of ``payload``; hex or base64 encoded."""
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    mac = hmac.new(secret.encode("utf-8"), data, getattr(hashlib, digest))
    if encoding == "base64":
        return base64.b64encode(mac.digest()).decode("ascii")
    return mac.hexdigest()


def query_string(params: dict[str, Any], *, sort: bool = True) -> str:
    items = sorted(params.items()) if sort else list(params.items())
    return urlencode(items)


def _error_fields(body: bytes) -> tuple[str | int | None, str]:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None, ""
    if not isinstance(data, dict):
        return None, ""
    code = data.get("code", data.get("error_code"))
    message = data.get("msg") or data.get("message") or data.get("error") or ""
    return code, str(message)


def _retry_after(headers: dict[str, str]) -> float:
    for name, value in headers.items():
        if name.lower() == "retry-after":
            try:
                return float(value)
            except ValueError:
                return 1.0
    return 1.0
