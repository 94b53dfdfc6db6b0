"""
Publish dispatcher - bounded, detached hand-off of tracking events to the publisher.

Each event is published on its own asyncio task with a fixed timeout. The task is not
a child of the request task: the client response never waits on it, and a client that
disconnects mid-request does not cancel the publish. Failures and timeouts are logged
and otherwise dropped.
"""
import asyncio
import logging
import time
from typing import Optional

from trackpoint.schemas.tracking import TrackingEvent
from trackpoint.services.publisher import PublishError, Publisher
from trackpoint.utils.logging import event_log_extra
from trackpoint.utils.metrics import PublishStats, elapsed_ms

logger = logging.getLogger(__name__)

DEFAULT_PUBLISH_TIMEOUT_SECONDS = 1.0
DEFAULT_MAX_IN_FLIGHT = 1000


class PublishDispatcher:
    def __init__(
        self,
        publisher: Publisher,
        timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        log: Optional[logging.Logger] = None,
    ):
        self.publisher = publisher
        self.timeout_seconds = timeout_seconds
        self.max_in_flight = max_in_flight
        self.log = log or logger
        self.stats = PublishStats()
        # Strong references keep running tasks from being garbage collected
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, event: TrackingEvent) -> Optional[asyncio.Task]:
        """
        Schedule a publish and return immediately.
        Returns the task, or None if the event was dropped because the backlog is full.
        Must be called from a running event loop.
        """
        if len(self._tasks) >= self.max_in_flight:
            self.log.warning(
                "Publish backlog full (%d in flight) - dropping %s event",
                len(self._tasks),
                event.event_type.value,
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "reason": "backlog_full",
                },
            )
            self.stats.record("backlog_full")
            return None

        task = asyncio.create_task(self._publish(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _publish(self, event: TrackingEvent) -> bool:
        extra = event_log_extra(event)
        started = time.monotonic()
        try:
            await asyncio.wait_for(
                self.publisher.publish(event),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.log.warning(
                "Publish timed out after %.2fs - %s event dropped",
                self.timeout_seconds,
                event.event_type.value,
                extra={**extra, "reason": "timeout"},
            )
            self.stats.record("timeout")
            return False
        except PublishError as e:
            self.log.warning(
                "Publish failed - %s event dropped: %s",
                event.event_type.value,
                str(e),
                extra={**extra, "reason": "publish_error"},
            )
            self.stats.record("publish_error")
            return False
        except Exception as e:
            self.log.warning(
                "Unexpected publish error - %s event dropped: %s",
                event.event_type.value,
                str(e),
                exc_info=True,
                extra={**extra, "reason": "unexpected"},
            )
            self.stats.record("unexpected")
            return False

        latency = elapsed_ms(started)
        self.stats.record("published", latency)
        self.log.debug(
            "Published %s event in %dms",
            event.event_type.value,
            latency,
            extra=extra,
        )
        return True

    async def drain(self, timeout: float) -> int:
        """
        Wait up to timeout seconds for in-flight publishes, then cancel the rest.
        Returns the number of publishes cancelled.
        """
        if not self._tasks:
            return 0
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            self.stats.record("cancelled", count=len(pending))
            self.log.warning("Cancelled %d in-flight publishes at shutdown", len(pending))
        return len(pending)
