"""
Publisher interface - the event bus ingress that durably records tracking events.

Back ends:
- RedisPublisher: pushes each event onto a Redis list (the durable queue drained by
  consumers) and announces it on a pub/sub channel for real-time subscribers.
- LoggingPublisher: dry-run back end that only logs. Used in development and wherever
  the queue is not available.

The ingestion path never awaits a publisher directly; see services/dispatch.py.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from trackpoint.config import Settings
from trackpoint.schemas.tracking import TrackingEvent

logger = logging.getLogger(__name__)


class PublishError(Exception):
    """The event bus rejected the event or could not be reached."""


class Publisher(ABC):
    """Abstract base class for event bus back ends."""

    @abstractmethod
    async def publish(self, event: TrackingEvent) -> None:
        """
        Durably hand off one event. Raises PublishError on failure.
        Delivery is at-least-once; consumers must tolerate duplicates.
        """
        ...

    async def ping(self) -> bool:
        """Readiness probe. Back ends without a connection are always ready."""
        return True


def serialize_event(event: TrackingEvent) -> str:
    return json.dumps(event.model_dump(mode="json"))


class RedisPublisher(Publisher):
    """Queue events in a Redis list and fan them out on a channel."""

    def __init__(self, list_key: str, channel: Optional[str] = None, redis=None):
        self.list_key = list_key
        self.channel = channel
        self._redis = redis

    async def _get_redis(self):
        if self._redis is None:
            from trackpoint.utils.redis_client import get_redis
            self._redis = await get_redis()
        return self._redis

    async def publish(self, event: TrackingEvent) -> None:
        payload = serialize_event(event)
        try:
            redis = await self._get_redis()
            # List is the durable hand-off; the channel is a best-effort live feed
            await redis.lpush(self.list_key, payload)
            if self.channel:
                await redis.publish(self.channel, payload)
        except Exception as e:
            raise PublishError(f"redis publish failed: {e}") from e

        logger.debug(
            "Tracking event queued: %s",
            event.event_type.value,
            extra={"event_id": event.event_id, "event_type": event.event_type.value},
        )

    async def ping(self) -> bool:
        try:
            redis = await self._get_redis()
            return bool(await redis.ping())
        except Exception as e:
            logger.warning("Redis ping failed: %s", str(e))
            return False


class LoggingPublisher(Publisher):
    """Dry-run publisher: logs the event instead of queueing it."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    async def publish(self, event: TrackingEvent) -> None:
        self.log.info(
            "[dry-run] tracking event %s: %s",
            event.event_type.value,
            serialize_event(event),
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "org_id": event.org_id,
                "campaign_id": event.campaign_id,
            },
        )


def build_publisher(settings: Settings) -> Publisher:
    """Publisher selected by PUBLISHER_BACKEND."""
    if settings.publisher_backend == "log":
        return LoggingPublisher()
    return RedisPublisher(
        list_key=settings.tracking_event_list_key,
        channel=settings.tracking_event_channel,
    )
