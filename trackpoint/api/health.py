"""
Health check endpoints - used by load balancers, container healthchecks, and monitoring.

- GET /health       - basic liveness (always 200 if app running)
- GET /health/ready - readiness check (event bus reachable)
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response

from trackpoint.api.deps import get_dispatcher
from trackpoint.api.responders import health_response
from trackpoint.services.dispatch import PublishDispatcher

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> Response:
    """Basic liveness check - returns 200 if the app is running."""
    return health_response()


@router.get("/health/ready")
async def readiness_check(
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
):
    """
    Readiness check - verifies the publisher back end answers.
    Tracking hits are still served when degraded; only events are lost.
    """
    checks = {"publisher": False}

    try:
        checks["publisher"] = await dispatcher.publisher.ping()
    except Exception as e:
        logger.warning("Publisher health check failed: %s", str(e))

    return {
        "status": "ready" if all(checks.values()) else "degraded",
        "checks": checks,
        "publishes_in_flight": dispatcher.in_flight,
        "publish_stats": dispatcher.stats.snapshot(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
