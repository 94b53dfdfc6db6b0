"""
FastAPI dependencies shared by the tracking routes.
Tests swap these through app.dependency_overrides.
"""
import logging
from functools import lru_cache
from typing import Optional

from trackpoint.config import get_settings
from trackpoint.services.dispatch import PublishDispatcher
from trackpoint.services.publisher import build_publisher
from trackpoint.services.token_codec import TokenCodec

_dispatcher: Optional[PublishDispatcher] = None


@lru_cache()
def get_token_codec() -> TokenCodec:
    settings = get_settings()
    return TokenCodec(settings.tracking_signing_key, settings.tracking_signature_length)


def get_dispatcher() -> PublishDispatcher:
    """Process-wide dispatcher, created on first use."""
    global _dispatcher
    if _dispatcher is None:
        settings = get_settings()
        _dispatcher = PublishDispatcher(
            build_publisher(settings),
            timeout_seconds=settings.publish_timeout_seconds,
            max_in_flight=settings.publish_max_in_flight,
        )
    return _dispatcher


def reset_dispatcher() -> None:
    global _dispatcher
    _dispatcher = None


def get_tracking_logger() -> logging.Logger:
    return logging.getLogger("trackpoint.tracking")
