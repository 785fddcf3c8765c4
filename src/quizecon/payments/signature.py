"""Payment notification signatures.

Header format: ``t=<unix seconds>,v1=<hex digest>[,v1=<hex digest>...]`` where
each digest is HMAC-SHA256 over ``"<t>." + raw body`` keyed with the shared
webhook secret. Several ``v1`` entries may be present while a secret rotates.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from datetime import datetime

from quizecon.errors import SignatureVerificationFailed

SIGNATURE_SCHEME = "v1"
DEFAULT_TOLERANCE_SECONDS = 300


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def build_signature_header(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Header value a sender would attach to ``payload``."""
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={timestamp},{SIGNATURE_SCHEME}={compute_signature(payload, timestamp, secret)}"


def parse_signature_header(header: str) -> tuple[int, list[str]]:
    """Split a header into its timestamp and candidate signatures."""
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureVerificationFailed("Malformed signature timestamp") from None
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)
    if timestamp is None:
        raise SignatureVerificationFailed("Signature header has no timestamp")
    if not signatures:
        raise SignatureVerificationFailed(f"Signature header has no {SIGNATURE_SCHEME} signature")
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: datetime | None = None,
) -> int:
    """Check ``header`` against ``payload``. Returns the signed timestamp.

    Raises SignatureVerificationFailed on a missing secret or header, a stale or
    future timestamp outside ``tolerance``, or no matching digest.
    """
    if not secret:
        raise SignatureVerificationFailed("Webhook secret is not configured")
    if not header:
        raise SignatureVerificationFailed("Missing signature header")

    timestamp, signatures = parse_signature_header(header)
    current = int(now.timestamp()) if now is not None else int(time.time())
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        raise SignatureVerificationFailed("Signature timestamp outside the tolerance window")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureVerificationFailed("No signature matches the payload")
    return timestamp
