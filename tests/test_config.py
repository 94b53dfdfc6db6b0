"""
Tests for trackpoint/config.py - settings validation.
"""
import pytest
from pydantic import ValidationError

from trackpoint.config import Settings


class TestSettings:
    def test_signing_key_required(self, monkeypatch):
        """Settings refuse to load without a signing key."""
        monkeypatch.delenv("TRACKING_SIGNING_KEY", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_defaults(self):
        """Unset options take their documented defaults."""
        settings = Settings(_env_file=None, tracking_signing_key="k")
        assert settings.tracking_signature_length == 16
        assert settings.publish_timeout_seconds == 1.0
        assert settings.owned_domains == []

    def test_owned_domains_parsed(self):
        """Comma-separated domains are trimmed, lowercased and de-blanked."""
        settings = Settings(
            _env_file=None,
            tracking_signing_key="k",
            tracking_owned_domains=" Shop.Example , ,blog.example",
        )
        assert settings.owned_domains == ["shop.example", "blog.example"]

    @pytest.mark.parametrize("value", [0, 0.01, 60])
    def test_publish_timeout_bounded(self, value):
        """Publish timeout outside 0.05-10s is rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, tracking_signing_key="k", publish_timeout_seconds=value)

    def test_unknown_publisher_backend_rejected(self):
        """Only redis and log back ends are accepted."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, tracking_signing_key="k", publisher_backend="kafka")

    def test_read_from_environment(self, monkeypatch):
        """Values are read from environment variables."""
        monkeypatch.setenv("TRACKING_SIGNING_KEY", "from-env")
        monkeypatch.setenv("PUBLISH_TIMEOUT_SECONDS", "0.25")
        settings = Settings(_env_file=None)
        assert settings.tracking_signing_key == "from-env"
        assert settings.publish_timeout_seconds == 0.25
