"""
Tracking token codec - encodes and decodes the signed per-recipient token.

Wire format:
    data = urlsafe_base64("OrgID|CampaignID|SubscriberID|EmailID[|LinkURL]")
    sig  = hex HMAC-SHA256(signing_key, data), truncated

The signature covers the encoded string exactly as it appears in the link, and is
checked before any field is trusted. Open and unsubscribe tokens need at least
three fields; click tokens need all five and a valid http(s) link.
"""
import base64
import binascii
import logging
import re
from typing import Optional
from urllib.parse import urlsplit

from trackpoint.schemas.tracking import EventType, TokenFields
from trackpoint.utils.signatures import compute_hmac_sha256, validate_hmac_sha256

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "|"
DEFAULT_SIGNATURE_LENGTH = 16

MIN_FIELDS = {
    EventType.OPEN: 3,
    EventType.UNSUBSCRIBE: 3,
    EventType.CLICK: 5,
}

_URLSAFE_B64 = re.compile(r"[A-Za-z0-9_-]+={0,2}")


class TokenError(Exception):
    """Token could not be trusted."""


class MalformedTokenError(TokenError):
    """Bad encoding, too few fields, or an unusable link."""


class SignatureInvalidError(TokenError):
    """Signature missing, forged, or the token was altered in transit."""


def is_valid_link(url: str) -> bool:
    """Absolute http(s) URL with a host and no whitespace or control characters."""
    if not url or any(c.isspace() or ord(c) < 32 or ord(c) == 127 for c in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class TokenCodec:
    """Signs, verifies, encodes and decodes tracking tokens with one server-held key."""

    def __init__(self, signing_key: str, signature_length: int = DEFAULT_SIGNATURE_LENGTH):
        if not signing_key:
            raise ValueError("signing_key must not be empty")
        self._signing_key = signing_key
        self._signature_length = signature_length

    def sign(self, raw: str) -> str:
        return compute_hmac_sha256(self._signing_key, raw, self._signature_length)

    def verify(self, raw: str, sig: str) -> bool:
        return validate_hmac_sha256(self._signing_key, sig, raw, self._signature_length)

    def encode(self, fields: TokenFields) -> str:
        """Encode fields into the URL-safe token string. Raises ValueError on unencodable ids."""
        ids = [fields.org_id, fields.campaign_id, fields.subscriber_id, fields.email_id or ""]
        for value in ids:
            if FIELD_DELIMITER in value:
                raise ValueError(f"token field may not contain {FIELD_DELIMITER!r}: {value!r}")

        parts = ids[:3]
        if fields.email_id is not None or fields.link_url is not None:
            parts.append(ids[3])
        if fields.link_url is not None:
            parts.append(fields.link_url)

        payload = FIELD_DELIMITER.join(parts).encode("utf-8")
        return base64.urlsafe_b64encode(payload).decode("ascii")

    def parse(self, raw: str, sig: Optional[str], event_type: EventType) -> TokenFields:
        """
        Decode and verify a token for the given event type.

        Raises MalformedTokenError or SignatureInvalidError. The signature is
        verified before the payload is decoded.
        """
        if not raw or not _URLSAFE_B64.fullmatch(raw):
            raise MalformedTokenError("token is not url-safe base64")

        if not sig or not self.verify(raw, sig):
            raise SignatureInvalidError("signature mismatch")

        try:
            padded = raw + "=" * (-len(raw) % 4) if "=" not in raw else raw
            text = base64.urlsafe_b64decode(padded).decode("utf-8")
        except (binascii.Error, ValueError) as e:
            raise MalformedTokenError(f"undecodable token: {e}") from e

        # The link is everything after the fourth delimiter and may itself contain one
        parts = text.split(FIELD_DELIMITER, 4)
        required = MIN_FIELDS[event_type]
        if len(parts) < required:
            raise MalformedTokenError(
                f"{event_type.value} token has {len(parts)} fields, needs {required}"
            )

        org_id, campaign_id, subscriber_id = parts[0], parts[1], parts[2]
        if not (org_id and campaign_id and subscriber_id):
            raise MalformedTokenError("empty identifier in token")

        email_id = parts[3] if len(parts) > 3 and parts[3] else None
        link_url = parts[4] if len(parts) > 4 else None

        if event_type == EventType.CLICK and not is_valid_link(link_url or ""):
            raise MalformedTokenError("click token carries an invalid link")

        return TokenFields(
            org_id=org_id,
            campaign_id=campaign_id,
            subscriber_id=subscriber_id,
            email_id=email_id,
            link_url=link_url,
        )

    def decode(
        self,
        raw: str,
        sig: Optional[str],
        event_type: EventType,
    ) -> tuple[Optional[TokenFields], bool]:
        """Non-raising form of parse(): returns (fields, True) or (None, False)."""
        try:
            return self.parse(raw, sig, event_type), True
        except TokenError as e:
            logger.debug("Token rejected for %s: %s", event_type.value, str(e))
            return None, False
