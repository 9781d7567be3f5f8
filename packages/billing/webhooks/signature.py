"""
Payment gateway webhook signature verification.

The gateway signs ``"<ts>:<raw body>"`` with HMAC-SHA256 using the webhook
secret and sends ``paddle-signature: ts=<ts>;h1=<hex digest>``. During secret
rotation the header may carry more than one ``h1`` value. Deliveries whose
``ts`` is further than the tolerance from the current time are rejected so a
captured delivery cannot be replayed later.
"""

import hashlib
import hmac
import time
from typing import List, Optional, Tuple

SIGNATURE_HEADER = "paddle-signature"


def parse_signature_header(header: Optional[str]) -> Tuple[Optional[str], List[str]]:
    """Split the header into its timestamp and the list of ``h1`` digests."""
    if not header:
        return None, []
    timestamp = None
    digests = []
    for part in header.split(";"):
        key, _, value = part.strip().partition("=")
        if not value:
            continue
        if key == "ts":
            timestamp = value
        elif key == "h1":
            digests.append(value)
    return timestamp, digests


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    signed_payload = timestamp.encode("utf-8") + b":" + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def is_fresh(timestamp: str, tolerance_seconds: int, now: Optional[float] = None) -> bool:
    try:
        signed_at = int(timestamp)
    except ValueError:
        return False
    now = time.time() if now is None else now
    return abs(now - signed_at) <= tolerance_seconds


def verify_signature(
    header: Optional[str],
    raw_body: bytes,
    secret: str,
    tolerance_seconds: Optional[int] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Constant-time check of the signature header against the raw request body.

    ``tolerance_seconds`` of None skips the timestamp freshness check.
    """
    if not secret:
        return False
    timestamp, digests = parse_signature_header(header)
    if not timestamp or not digests:
        return False
    if tolerance_seconds is not None and not is_fresh(timestamp, tolerance_seconds, now):
        return False
    expected = compute_signature(secret, timestamp, raw_body)
    return any(hmac.compare_digest(expected, digest) for digest in digests)
