import hashlib
import hmac
import logging
import time
from typing import Iterable

from payment_flow.schemas.webhook import (
    Rejection,
    RejectionReason,
    SignedPayload,
    VerifiedEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 300
TIMESTAMP_KEY = "t"
SIGNATURE_KEY = "v1"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def build_signature_header(
    payload: bytes,
    secret: str,
    timestamp: int | None = None,
    extra_signatures: Iterable[str] = (),
) -> str:
    """Build a `Stripe-Signature` style header for `payload`.

    Used by the local signing script and the tests to fake processor calls.
    """
    if timestamp is None:
        timestamp = int(time.time())
    parts = [f"{TIMESTAMP_KEY}={timestamp}"]
    parts.append(f"{SIGNATURE_KEY}={compute_signature(payload, secret, timestamp)}")
    parts.extend(f"{SIGNATURE_KEY}={sig}" for sig in extra_signatures)
    return ",".join(parts)


def parse_signature_header(payload: bytes, header: str | None) -> SignedPayload | Rejection:
    if not header:
        return Rejection(RejectionReason.MALFORMED_HEADER, "Missing signature header")

    timestamp: str | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == TIMESTAMP_KEY:
            timestamp = value
        elif key == SIGNATURE_KEY and value:
            signatures.append(value)
        # other schemes (v0, ...) are ignored

    if timestamp is None:
        return Rejection(RejectionReason.MALFORMED_HEADER, "No timestamp in signature header")
    try:
        ts = int(timestamp)
    except ValueError:
        return Rejection(RejectionReason.MALFORMED_HEADER, "Timestamp is not an integer")
    if not signatures:
        return Rejection(RejectionReason.MALFORMED_HEADER, "No v1 signature in signature header")

    return SignedPayload(payload=payload, timestamp=ts, signatures=tuple(signatures))


def verify(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int | None = DEFAULT_TOLERANCE,
    now: int | None = None,
) -> VerifiedEvent | Rejection:
    """Check `payload` against the signature header sent by Stripe.

    Every v1 value is compared in constant time, so a header carrying
    signatures for both the old and the new secret during a rollover is
    accepted. The timestamp must be no older than `tolerance` seconds;
    pass ``tolerance=None`` to skip that check.
    """
    signed = parse_signature_header(payload, header)
    if isinstance(signed, Rejection):
        return signed

    expected = compute_signature(signed.payload, secret, signed.timestamp).encode("ascii")
    # headers can carry any latin-1 character; compare_digest only takes ASCII str
    if not any(
        hmac.compare_digest(expected, sig.encode("utf-8", "replace"))
        for sig in signed.signatures
    ):
        return Rejection(RejectionReason.SIGNATURE_MISMATCH, "No signature matches the payload")

    if now is None:
        now = int(time.time())
    if tolerance is not None and now - signed.timestamp > tolerance:
        return Rejection(
            RejectionReason.TIMESTAMP_TOO_OLD,
            f"Timestamp outside tolerance: {now - signed.timestamp}s > {tolerance}s",
        )

    return VerifiedEvent(payload=signed.payload)
