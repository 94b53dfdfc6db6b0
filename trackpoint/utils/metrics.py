"""
Metrics utilities - in-process publish outcome counters, surfaced on /health/ready.
"""
import time

PUBLISH_OUTCOMES = (
    "published",
    "timeout",
    "publish_error",
    "unexpected",
    "backlog_full",
    "cancelled",
)


def elapsed_ms(started: float) -> int:
    """Milliseconds since a time.monotonic() reading."""
    return int((time.monotonic() - started) * 1000)


class PublishStats:
    """Counts of publish outcomes plus latency of the successful ones."""

    def __init__(self):
        self.counts: dict[str, int] = dict.fromkeys(PUBLISH_OUTCOMES, 0)
        self.max_latency_ms = 0
        self._latency_total_ms = 0

    def record(self, outcome: str, latency_ms: int = 0, count: int = 1) -> None:
        if outcome not in self.counts:
            raise ValueError(f"Unknown publish outcome: {outcome}")
        self.counts[outcome] += count
        if outcome == "published":
            self._latency_total_ms += latency_ms
            self.max_latency_ms = max(self.max_latency_ms, latency_ms)

    @property
    def dropped(self) -> int:
        return sum(v for k, v in self.counts.items() if k != "published")

    @property
    def avg_latency_ms(self) -> float:
        published = self.counts["published"]
        if not published:
            return 0.0
        return round(self._latency_total_ms / published, 1)

    def snapshot(self) -> dict:
        return {
            **self.counts,
            "dropped": self.dropped,
            "avg_latency_ms": self.avg_latency_ms,
            "max_latency_ms": self.max_latency_ms,
        }
