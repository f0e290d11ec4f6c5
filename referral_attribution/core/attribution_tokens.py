"""Opaque attribution tokens.

A token carries the device id, the referral code and the instant it was issued.
It is not authoritative on its own: a claim is only accepted when the token is
byte-for-byte equal to the one stored with the device's attribution. A signing
secret adds an HMAC tag on top of that for deployments that want tampering
rejected before the store is consulted.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

TOKEN_PREFIX = "attr1."
_FIELD_SEPARATOR = "|"
_SIGNATURE_SEPARATOR = "."
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)
_MICROS_PATTERN = re.compile(r"[0-9]{1,20}")


@dataclass(frozen=True, slots=True)
class TokenClaims:
    device_id: str
    referral_code: str
    issued_at: datetime


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(encoded: str) -> bytes:
    padded = encoded + "=" * (-len(encoded) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def _sign(secret: bytes, body: str) -> str:
    digest = hmac.new(secret, f"{TOKEN_PREFIX}{body}".encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


class AttributionTokenCodec:
    def __init__(self, secret: str | None = None) -> None:
        self._secret = secret.encode("utf-8") if secret else None

    def encode(self, device_id: str, referral_code: str, issued_at: datetime) -> str:
        if issued_at.tzinfo is None:
            raise ValueError("issued_at must be timezone-aware")
        if issued_at < _EPOCH:
            raise ValueError("issued_at must not precede the Unix epoch")
        issued_micros = (issued_at - _EPOCH) // _ONE_MICROSECOND
        payload = _FIELD_SEPARATOR.join((device_id, referral_code, str(issued_micros)))
        body = _b64encode(payload.encode("utf-8"))
        if self._secret is None:
            return f"{TOKEN_PREFIX}{body}"
        return f"{TOKEN_PREFIX}{body}{_SIGNATURE_SEPARATOR}{_sign(self._secret, body)}"

    def decode(self, token: str) -> TokenClaims | None:
        if not token or not token.startswith(TOKEN_PREFIX):
            return None

        segments = token[len(TOKEN_PREFIX) :].split(_SIGNATURE_SEPARATOR)
        if self._secret is None:
            if len(segments) != 1:
                return None
            body = segments[0]
        else:
            if len(segments) != 2:
                return None
            body, signature = segments
            expected = _sign(self._secret, body)
            if not signature.isascii() or not hmac.compare_digest(signature, expected):
                return None

        try:
            payload = _b64decode(body).decode("utf-8")
        except (binascii.Error, ValueError):
            return None

        # The code and timestamp never contain the separator, the device id may.
        fields = payload.rsplit(_FIELD_SEPARATOR, 2)
        if len(fields) != 3:
            return None
        device_id, referral_code, issued_raw = fields
        if not device_id or not referral_code or not _MICROS_PATTERN.fullmatch(issued_raw):
            return None

        try:
            issued_at = _EPOCH + timedelta(microseconds=int(issued_raw))
        except OverflowError:
            return None

        return TokenClaims(device_id=device_id, referral_code=referral_code, issued_at=issued_at)
