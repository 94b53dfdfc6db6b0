"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    # Redis (event queue)
    redis_url: str = "redis://localhost:6379/0"

    # Sentry
    sentry_dsn: str = ""

    # Tracking tokens
    tracking_signing_key: str = Field(..., min_length=1)
    tracking_signature_length: int = Field(default=16, ge=8, le=64)
    tracking_base_url: str = "http://localhost:8000"
    tracking_owned_domains: str = ""  # Comma-separated; redirects get eid/cid/sid appended

    # Publisher
    publisher_backend: str = Field(default="redis", pattern="^(redis|log)$")
    tracking_event_list_key: str = "trackpoint:tracking_events"
    tracking_event_channel: str = "trackpoint:tracking_events:live"

    # Publish budget - detached from the inbound request
    publish_timeout_seconds: float = Field(default=1.0, ge=0.05, le=10.0)
    publish_max_in_flight: int = Field(default=1000, ge=1)
    shutdown_drain_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def owned_domains(self) -> list[str]:
        return [
            d.strip().lower()
            for d in self.tracking_owned_domains.split(",")
            if d.strip()
        ]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
