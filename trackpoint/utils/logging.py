"""
Structured JSON logging for the tracking service.

One JSON object per line: timestamp, level, service, correlation_id, logger, message,
plus whitelisted tracking fields passed through extra={...}. The correlation ID is
set per request by middleware and read back from a context variable, so publish tasks
spawned during a request log with the request's ID.
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterable, Optional

SERVICE_NAME = "trackpoint"

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

TRACKING_LOG_FIELDS = (
    "event_type",
    "event_id",
    "org_id",
    "campaign_id",
    "reason",
    "error_code",
)

# Loggers that would otherwise emit a line per pixel fetch or per Redis command
QUIET_LOGGERS = ("uvicorn.access", "redis", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """32-char hex ID for requests that arrive without X-Correlation-ID."""
    return uuid.uuid4().hex


def event_log_extra(event) -> dict:
    """extra={...} payload identifying a tracking event in log lines."""
    return {
        "event_id": event.event_id,
        "event_type": event.event_type.value,
        "org_id": event.org_id,
        "campaign_id": event.campaign_id,
    }


class StructuredJsonFormatter(logging.Formatter):
    def __init__(
        self,
        service: str = SERVICE_NAME,
        extra_fields: Iterable[str] = TRACKING_LOG_FIELDS,
    ):
        super().__init__()
        self.service = service
        self.extra_fields = tuple(extra_fields)

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        line = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "service": self.service,
            "correlation_id": get_correlation_id(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self.extra_fields:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            line["exception"] = self.formatException(record.exc_info)

        return json.dumps(line, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Install a single JSON stream handler on the root logger. Call once at startup."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
