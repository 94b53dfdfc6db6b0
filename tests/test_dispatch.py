"""
Tests for trackpoint/services/dispatch.py - detached, time-bounded publishing.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

from trackpoint.schemas.tracking import EventType, TrackingEvent
from trackpoint.services.dispatch import PublishDispatcher


def _event() -> TrackingEvent:
    return TrackingEvent(
        event_type=EventType.OPEN,
        org_id="org1",
        campaign_id="camp1",
        subscriber_id="sub1",
        email_id="email1",
        timestamp=datetime.now(timezone.utc),
    )


class TestDispatch:
    async def test_publishes_in_background(self, recording_publisher):
        """Dispatched event reaches the publisher and is counted."""
        dispatcher = PublishDispatcher(recording_publisher)
        event = _event()

        task = dispatcher.dispatch(event)
        assert await task is True

        assert recording_publisher.events == [event]
        assert dispatcher.in_flight == 0
        assert dispatcher.stats.counts["published"] == 1

    async def test_dispatch_returns_before_publish_completes(self, hanging_publisher):
        """dispatch() returns immediately even if the publisher hangs."""
        dispatcher = PublishDispatcher(hanging_publisher, timeout_seconds=5)

        started = time.monotonic()
        task = dispatcher.dispatch(_event())
        assert time.monotonic() - started < 0.1
        assert not task.done()

        await dispatcher.drain(0)

    async def test_timeout_is_logged_not_raised(self, hanging_publisher):
        """A hung publish is cut off at the timeout and logged."""
        log = MagicMock(spec=logging.Logger)
        dispatcher = PublishDispatcher(hanging_publisher, timeout_seconds=0.05, log=log)

        assert await dispatcher.dispatch(_event()) is False

        log.warning.assert_called_once()
        assert log.warning.call_args.kwargs["extra"]["reason"] == "timeout"
        assert hanging_publisher.cancelled == 1
        assert dispatcher.stats.counts["timeout"] == 1

    async def test_publish_error_is_logged_not_raised(self, failing_publisher):
        """PublishError is logged with reason publish_error."""
        log = MagicMock(spec=logging.Logger)
        dispatcher = PublishDispatcher(failing_publisher, log=log)

        assert await dispatcher.dispatch(_event()) is False

        assert log.warning.call_args.kwargs["extra"]["reason"] == "publish_error"

    async def test_unexpected_error_is_logged_not_raised(self):
        """Any other exception is logged with a traceback."""
        publisher = MagicMock()
        publisher.publish = MagicMock(side_effect=RuntimeError("boom"))
        log = MagicMock(spec=logging.Logger)
        dispatcher = PublishDispatcher(publisher, log=log)

        assert await dispatcher.dispatch(_event()) is False

        assert log.warning.call_args.kwargs["extra"]["reason"] == "unexpected"

    async def test_survives_cancellation_of_caller(self, recording_publisher):
        """A cancelled request task does not take the publish down with it."""
        dispatcher = PublishDispatcher(recording_publisher)
        tasks = []

        async def handler():
            tasks.append(dispatcher.dispatch(_event()))
            await asyncio.sleep(10)

        request_task = asyncio.create_task(handler())
        await asyncio.sleep(0)
        request_task.cancel()
        await asyncio.gather(request_task, return_exceptions=True)

        assert await tasks[0] is True
        assert len(recording_publisher.events) == 1


class TestBacklogBound:
    async def test_drops_when_full(self, hanging_publisher):
        """Events beyond max_in_flight are dropped with a warning."""
        log = MagicMock(spec=logging.Logger)
        dispatcher = PublishDispatcher(hanging_publisher, timeout_seconds=5, max_in_flight=2, log=log)

        assert dispatcher.dispatch(_event()) is not None
        assert dispatcher.dispatch(_event()) is not None
        assert dispatcher.dispatch(_event()) is None

        assert dispatcher.in_flight == 2
        assert log.warning.call_args.kwargs["extra"]["reason"] == "backlog_full"
        assert dispatcher.stats.counts["backlog_full"] == 1

        await dispatcher.drain(0)


class TestDrain:
    async def test_nothing_in_flight(self, recording_publisher):
        """Draining an idle dispatcher cancels nothing."""
        assert await PublishDispatcher(recording_publisher).drain(1) == 0

    async def test_waits_for_quick_publishes(self, recording_publisher):
        """Drain lets fast publishes finish."""
        dispatcher = PublishDispatcher(recording_publisher)
        for _ in range(3):
            dispatcher.dispatch(_event())

        assert await dispatcher.drain(1) == 0
        assert len(recording_publisher.events) == 3

    async def test_cancels_stragglers(self, hanging_publisher):
        """Publishes still running after the drain budget are cancelled."""
        dispatcher = PublishDispatcher(hanging_publisher, timeout_seconds=5)
        dispatcher.dispatch(_event())
        dispatcher.dispatch(_event())

        assert await dispatcher.drain(0.05) == 2
        assert dispatcher.in_flight == 0
        assert dispatcher.stats.counts["cancelled"] == 2
