"""
Event builder - turns verified token fields plus what the server observed about the
request into a TrackingEvent.

Only ip_address, user_agent and timestamp (and the device/bot classification derived
from the user agent) come from the request. Everything that attributes the event to an
organization, campaign, subscriber or link comes from the verified token.
"""
from datetime import datetime, timezone
from typing import Mapping, Optional

from fastapi import Request

from trackpoint.schemas.tracking import EventType, TokenFields, TrackingEvent

BOT_PATTERNS = (
    "bot", "crawler", "spider", "slurp", "googlebot", "bingbot",
    "yahoo", "baidu", "yandex", "preview", "proxy", "scanner",
)

_last_timestamp: Optional[datetime] = None


def utc_now() -> datetime:
    """Current UTC time, never earlier than a value previously returned in this process."""
    global _last_timestamp
    now = datetime.now(timezone.utc)
    if _last_timestamp is not None and now < _last_timestamp:
        now = _last_timestamp
    _last_timestamp = now
    return now


def resolve_client_ip(headers: Mapping[str, str], peer: Optional[str]) -> str:
    """
    Client IP as seen through the load balancer.
    X-Forwarded-For (first hop) wins, then X-Real-Ip, then the socket peer.
    """
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return peer or ""


def detect_device(user_agent: str) -> str:
    ua = user_agent.lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return "mobile"
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    return "desktop"


def is_bot(user_agent: str) -> bool:
    ua = user_agent.lower()
    return any(pattern in ua for pattern in BOT_PATTERNS)


def build_event(
    fields: TokenFields,
    event_type: EventType,
    ip_address: str,
    user_agent: str,
    received_at: Optional[datetime] = None,
) -> TrackingEvent:
    """Build the event for one accepted request. link_url is kept for clicks only."""
    return TrackingEvent(
        event_type=event_type,
        org_id=fields.org_id,
        campaign_id=fields.campaign_id,
        subscriber_id=fields.subscriber_id,
        email_id=fields.email_id,
        link_url=fields.link_url if event_type == EventType.CLICK else None,
        ip_address=ip_address,
        user_agent=user_agent,
        device_type=detect_device(user_agent),
        is_bot=is_bot(user_agent),
        timestamp=received_at or utc_now(),
    )


def build_event_from_request(
    fields: TokenFields,
    event_type: EventType,
    request: Request,
    received_at: Optional[datetime] = None,
) -> TrackingEvent:
    peer = request.client.host if request.client else None
    return build_event(
        fields,
        event_type,
        ip_address=resolve_client_ip(request.headers, peer),
        user_agent=request.headers.get("user-agent", ""),
        received_at=received_at,
    )
