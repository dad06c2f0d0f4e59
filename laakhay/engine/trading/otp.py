"""Time-based one-time passwords (RFC 6238) for withdrawal confirmation."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import struct
import time

from ..core.exceptions import OTPRejectedError

TOTP_STEP = 30
TOTP_DIGITS = 6


def totp(secret: str, *, at: float | None = None, step: int = TOTP_STEP, digits: int = TOTP_DIGITS) -> str:
    """Generate the code for ``secret`` (base32) at ``at`` (epoch seconds).

    Raises:
        OTPRejectedError: If the secret is empty or not valid base32
    """
    key = _decode_secret(secret)
    counter = int((time.time() if at is None else at) // step)
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(value % 10**digits).zfill(digits)


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.replace(" ", "").upper()
    if not cleaned:
        raise OTPRejectedError("otp secret is empty")
    cleaned += "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned)
    except (binascii.Error, ValueError) as exc:
        raise OTPRejectedError(f"otp secret is not valid base32: {exc}") from exc
