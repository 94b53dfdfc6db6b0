"""
trackpoint - tracking-event ingestion for email campaigns.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from trackpoint.config import get_settings
from trackpoint.api.deps import get_dispatcher, get_token_codec
from trackpoint.api.router import api_router
from trackpoint.utils.redis_client import close_redis
from trackpoint.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("trackpoint")


CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags each request, its log lines and its publish tasks with one correlation ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        return response


def _init_sentry(settings) -> None:
    """Error reporting is optional; a bad DSN must not stop tracking hits."""
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            environment=settings.app_env,
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.warning("Sentry initialization failed: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "trackpoint starting up (env=%s, publisher=%s)",
        settings.app_env, settings.publisher_backend,
    )

    if settings.publisher_backend == "log":
        logger.warning(
            "PUBLISHER_BACKEND=log - tracking events are logged, not queued. "
            "Use the redis back end in production."
        )

    if settings.sentry_dsn:
        _init_sentry(settings)

    # Build the codec and dispatcher now so a bad signing key fails at startup
    get_token_codec()
    dispatcher = get_dispatcher()

    yield

    # Graceful shutdown - let in-flight publishes finish within the drain budget
    logger.info(
        "trackpoint shutting down - draining %d in-flight publishes...",
        dispatcher.in_flight,
    )
    cancelled = await dispatcher.drain(settings.shutdown_drain_seconds)
    await close_redis()
    logger.info("trackpoint shutdown complete (%d publishes cancelled)", cancelled)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="trackpoint",
        description="Open, click and unsubscribe tracking for email campaigns",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(app, host=_settings.app_host, port=_settings.app_port)
