"""
Keyed signatures for tracking tokens.

Tokens are signed with HMAC-SHA256 over the encoded token string. The hex digest
is truncated so links stay short; comparison is always constant-time.
"""
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def compute_hmac_sha256(secret: str, payload: str, length: int | None = None) -> str:
    """Return the hex HMAC-SHA256 of payload, optionally truncated to length chars."""
    digest = hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    if length is not None:
        return digest[:length]
    return digest


def validate_hmac_sha256(
    secret: str,
    signature: str,
    payload: str,
    length: int | None = None,
) -> bool:
    """
    Validate an HMAC-SHA256 signature over payload.
    Returns True if valid, False if invalid, missing, or on error.
    """
    if not secret or not signature:
        return False

    try:
        expected = compute_hmac_sha256(secret, payload, length)
        return hmac.compare_digest(
            expected.encode("ascii"),
            signature.encode("utf-8"),
        )
    except Exception as e:
        logger.error("HMAC-SHA256 validation error: %s", str(e))
        return False
