"""Request signing for the task API: HMAC-SHA256 over a delimited triple.

Every outbound call carries two query parameters derived here:

    t    = milliseconds since the epoch, as a decimal string
    ras  = HMAC-SHA256(secret, "|<type>|<username>|<t>|"), lowercase hex

The URL check signs with an empty username, so the same type and
timestamp produce a different ``ras`` than a task submission does.
"""

import hashlib
import hmac
import secrets
import time
from typing import Optional

SIGNATURE_HEX_LENGTH = 64
FIELD_DELIMITER = "|"


def build_signing_message(type_: str, username: Optional[str], timestamp: str) -> str:
    """Serialize the signing triple as ``|type|username|timestamp|``.

    A None username signs the same as ``""``.
    """
    d = FIELD_DELIMITER
    return f"{d}{type_}{d}{username or ''}{d}{timestamp}{d}"


def sign(type_: str, username: Optional[str], timestamp: str, secret: str) -> str:
    """HMAC-SHA256 sign one request.

    Args:
        type_: Task type (stored config value, not the ``jd`` literal).
        username: Account name; empty for the URL check.
        timestamp: Value sent as ``t``.
        secret: Shared signing secret.

    Returns:
        64-char lowercase hex digest.
    """
    message = build_signing_message(type_, username, timestamp).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    signature: str,
    type_: str,
    username: Optional[str],
    timestamp: str,
    secret: str,
) -> bool:
    """Recompute the signature and compare in constant time."""
    expected = sign(type_, username, timestamp, secret)
    return secrets.compare_digest(expected, signature.lower())


def current_timestamp() -> str:
    """Milliseconds since the epoch as a string."""
    return str(time.time_ns() // 1_000_000)
