"""HMAC helpers for signed subscriber links and provider webhooks."""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass

UNSUBSCRIBE_TOKEN_TTL_SECONDS = 90 * 24 * 60 * 60
WEBHOOK_TOLERANCE_SECONDS = 5 * 60

# Timestamps above this are treated as milliseconds.
_MILLISECOND_THRESHOLD = 1_000_000_000_000


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _hmac_hex(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_unsubscribe_token(email: str, expiry: int, secret: str) -> str:
    """Token for ``email`` valid until ``expiry`` (unix seconds)."""
    return _hmac_hex(secret, f"{normalize_email(email)}:{expiry}")


def token_expiry(now: float | None = None) -> int:
    current = time.time() if now is None else now
    return int(current) + UNSUBSCRIBE_TOKEN_TTL_SECONDS


def verify_unsubscribe_token(
    email: str,
    token: str,
    expiry: int | str,
    secret: str,
    now: float | None = None,
) -> bool:
    """Reject on signature mismatch or when ``now`` is past ``expiry``."""
    try:
        expiry_seconds = int(expiry)
    except (TypeError, ValueError):
        return False
    current = time.time() if now is None else now
    if int(current) > expiry_seconds:
        return False
    expected = generate_unsubscribe_token(email, expiry_seconds, secret)
    return hmac.compare_digest(token, expected)


@dataclass(frozen=True)
class ParsedSignature:
    signature: str
    timestamp_ms: int | None
    signed_timestamp: str | None


@dataclass(frozen=True)
class SignatureResult:
    ok: bool
    error: str | None = None


def _parse_timestamp(value: str | None) -> int | None:
    if not value:
        return None
    try:
        numeric = int(float(value))
    except ValueError:
        return None
    return numeric if numeric > _MILLISECOND_THRESHOLD else numeric * 1000


def parse_resend_signature(
    signature_header: str | None, timestamp_header: str | None = None
) -> ParsedSignature | None:
    """Accept ``t=<ts>,v1=<sig>`` or a bare signature plus a timestamp header."""
    if not signature_header:
        return None

    if "t=" in signature_header:
        fields: dict[str, str] = {}
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key and value:
                fields[key] = value
        signature = fields.get("v1") or fields.get("signature")
        if not signature:
            return None
        timestamp_value = fields.get("t") or timestamp_header
        return ParsedSignature(
            signature=signature,
            timestamp_ms=_parse_timestamp(timestamp_value),
            signed_timestamp=timestamp_value,
        )

    return ParsedSignature(
        signature=signature_header,
        timestamp_ms=_parse_timestamp(timestamp_header),
        signed_timestamp=timestamp_header or None,
    )


def verify_resend_signature(
    raw_body: str,
    signature_header: str | None,
    timestamp_header: str | None,
    secret: str,
    tolerance_seconds: int = WEBHOOK_TOLERANCE_SECONDS,
    now: float | None = None,
) -> SignatureResult:
    parsed = parse_resend_signature(signature_header, timestamp_header)
    if parsed is None:
        return SignatureResult(ok=False, error="missing_signature")

    if parsed.timestamp_ms is not None:
        now_ms = int((time.time() if now is None else now) * 1000)
        if abs(now_ms - parsed.timestamp_ms) > tolerance_seconds * 1000:
            return SignatureResult(ok=False, error="timestamp_out_of_range")

    signed_payload = (
        f"{parsed.signed_timestamp}.{raw_body}" if parsed.signed_timestamp else raw_body
    )
    expected = _hmac_hex(secret, signed_payload)
    if hmac.compare_digest(parsed.signature, expected):
        return SignatureResult(ok=True)
    return SignatureResult(ok=False, error="invalid_signature")
