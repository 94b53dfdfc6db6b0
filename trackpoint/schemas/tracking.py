"""
Tracking schemas - token fields decoded from a link and the event handed to the publisher.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EventType(str, Enum):
    OPEN = "open"
    CLICK = "click"
    UNSUBSCRIBE = "unsubscribe"


class TokenFields(BaseModel):
    """Fields carried inside a signed tracking token, in wire order."""
    model_config = ConfigDict(frozen=True)

    org_id: str
    campaign_id: str
    subscriber_id: str
    email_id: Optional[str] = None
    link_url: Optional[str] = None

    @field_validator("email_id", mode="before")
    @classmethod
    def blank_email_id_is_absent(cls, v):
        # An empty email segment on the wire decodes to None
        return v or None


class TrackingEvent(BaseModel):
    """
    One open, click or unsubscribe, ready for the event bus.

    Attribution fields come only from the verified token. ip_address, user_agent,
    timestamp, device_type and is_bot are observed by the server at receipt.
    """
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    event_type: EventType
    org_id: str = Field(..., min_length=1)
    campaign_id: str = Field(..., min_length=1)
    subscriber_id: str = Field(..., min_length=1)
    email_id: Optional[str] = None
    link_url: Optional[str] = None
    ip_address: str = ""
    user_agent: str = ""
    device_type: str = "desktop"
    is_bot: bool = False
    timestamp: datetime

    @model_validator(mode="after")
    def _link_only_on_click(self) -> "TrackingEvent":
        if self.event_type == EventType.CLICK and not self.link_url:
            raise ValueError("click events require link_url")
        if self.event_type != EventType.CLICK and self.link_url is not None:
            raise ValueError("link_url is only valid on click events")
        return self
