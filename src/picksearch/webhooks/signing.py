"""HMAC-SHA256 signatures for webhook payloads.

Receivers verify a delivery by recomputing HMAC-SHA256 over the raw request
body with their shared secret and comparing it, in constant time, with the
X-Picksearch-Signature header.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Picksearch-Signature"
SIGNATURE_PREFIX = "sha256="


def _to_bytes(value: str | bytes | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(secret: str | bytes | None, message: str | bytes) -> str:
    """Compute the HMAC-SHA256 signature for a webhook body.

    A missing secret signs with the empty key. That keeps the header present
    but proves nothing, so onboarding should require a secret.

    Args:
        secret: Shared secret for HMAC.
        message: Exact request body bytes (str is UTF-8 encoded).

    Returns:
        Signature in format "sha256=<hex_digest>".
    """
    digest = hmac.new(
        key=_to_bytes(secret),
        msg=_to_bytes(message),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str | bytes | None, message: str | bytes, signature: str) -> bool:
    """Verify a webhook signature.

    Args:
        secret: Shared secret for HMAC.
        message: Raw request body as received.
        signature: Value of the X-Picksearch-Signature header.

    Returns:
        True if signature is valid, False otherwise.
    """
    expected = compute_signature(secret, message)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
