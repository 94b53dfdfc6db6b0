"""
Tests for trackpoint/utils/signatures.py - HMAC helpers behind token signing.
"""
import hashlib
import hmac
from unittest.mock import patch

from trackpoint.utils.signatures import compute_hmac_sha256, validate_hmac_sha256


class TestComputeHmac:
    def test_matches_stdlib_hmac(self):
        """Signature is the HMAC-SHA256 hex digest."""
        expected = hmac.new(b"secret", b"payload", hashlib.sha256).hexdigest()
        assert compute_hmac_sha256("secret", "payload") == expected

    def test_truncates(self):
        """Signature is cut to the requested length."""
        assert compute_hmac_sha256("secret", "payload", 16) == compute_hmac_sha256("secret", "payload")[:16]


class TestValidateHmac:
    def test_valid(self):
        """Matching signature validates."""
        sig = compute_hmac_sha256("secret", "payload", 16)
        assert validate_hmac_sha256("secret", sig, "payload", 16) is True

    def test_wrong_payload(self):
        """Signature over another payload fails."""
        sig = compute_hmac_sha256("secret", "payload", 16)
        assert validate_hmac_sha256("secret", sig, "payload2", 16) is False

    def test_truncated_signature_against_full_length(self):
        """Truncated signature fails a full-length check."""
        sig = compute_hmac_sha256("secret", "payload", 16)
        assert validate_hmac_sha256("secret", sig, "payload") is False

    def test_missing_secret_or_signature(self):
        """Empty secret or signature never validates."""
        assert validate_hmac_sha256("", "abc", "payload") is False
        assert validate_hmac_sha256("secret", "", "payload") is False

    def test_non_ascii_signature(self):
        """Non-ASCII signature fails instead of raising."""
        assert validate_hmac_sha256("secret", "ü" * 16, "payload", 16) is False

    def test_hmac_exception_returns_false(self):
        """Errors inside hmac are logged and fail closed."""
        with patch("trackpoint.utils.signatures.hmac.new", side_effect=Exception("HMAC error")):
            assert validate_hmac_sha256("secret", "abc", "payload") is False
