"""
Test configuration and fixtures.
Required settings come from the environment; no Redis or network is touched.
"""
import asyncio
import base64
import os

os.environ.setdefault("TRACKING_SIGNING_KEY", "test-signing-key")
os.environ.setdefault("PUBLISHER_BACKEND", "log")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from trackpoint.schemas.tracking import TrackingEvent
from trackpoint.services.publisher import Publisher, PublishError
from trackpoint.services.token_codec import TokenCodec

SIGNING_KEY = "test-signing-key"


class RecordingPublisher(Publisher):
    """Test double: remembers every event, optionally failing."""

    def __init__(self, fail_with: Exception | None = None):
        self.events: list[TrackingEvent] = []
        self.fail_with = fail_with

    async def publish(self, event: TrackingEvent) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)


class HangingPublisher(Publisher):
    """Test double: an event bus that never answers."""

    def __init__(self):
        self.started = 0
        self.cancelled = 0

    async def publish(self, event: TrackingEvent) -> None:
        self.started += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


def encode_text(text: str) -> str:
    """URL-safe base64 of a raw token string, the way the send pipeline emits it."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def codec():
    return TokenCodec(SIGNING_KEY)


@pytest.fixture
def signed(codec):
    """Build (data, sig) for a raw 'a|b|c...' token string."""
    def _signed(text: str) -> tuple[str, str]:
        data = encode_text(text)
        return data, codec.sign(data)
    return _signed


@pytest.fixture
def recording_publisher():
    return RecordingPublisher()


@pytest.fixture
def failing_publisher():
    return RecordingPublisher(fail_with=PublishError("queue unavailable"))


@pytest.fixture
def hanging_publisher():
    return HangingPublisher()
