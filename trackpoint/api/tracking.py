"""
Tracking endpoints - opens, clicks and unsubscribes from links embedded in sent email.

Every hit follows the same path: verify token -> build event -> dispatch publish ->
respond. The publish is never awaited here. What happens to an untrusted token depends
on the route:
- open: the pixel is returned anyway (a broken image in a rendered email is worse
  than a lost open)
- click / unsubscribe: 400, since the recipient is actively navigating

The click redirect target is taken from the verified token only.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from trackpoint.api.deps import get_dispatcher, get_token_codec, get_tracking_logger
from trackpoint.api.responders import (
    bad_link_response,
    pixel_response,
    redirect_response,
    unsubscribe_confirmation_response,
)
from trackpoint.config import Settings, get_settings
from trackpoint.schemas.tracking import EventType, TokenFields
from trackpoint.services.dispatch import PublishDispatcher
from trackpoint.services.event_builder import build_event_from_request, utc_now
from trackpoint.services.link_builder import enrich_redirect_url
from trackpoint.services.token_codec import TokenCodec, TokenError

router = APIRouter(prefix="/track", tags=["tracking"])


def _accept(
    request: Request,
    data: str,
    sig: Optional[str],
    event_type: EventType,
    codec: TokenCodec,
    dispatcher: PublishDispatcher,
    log: logging.Logger,
) -> Optional[TokenFields]:
    """Verify the token and hand the event off. Returns None if the token is untrusted."""
    received_at = utc_now()
    try:
        fields = codec.parse(data, sig, event_type)
    except TokenError as e:
        log.info(
            "Rejected %s token: %s",
            event_type.value,
            str(e),
            extra={"event_type": event_type.value, "reason": type(e).__name__},
        )
        return None

    try:
        event = build_event_from_request(fields, event_type, request, received_at)
        dispatcher.dispatch(event)
    except Exception as e:
        # The token was trusted; a failed hand-off only loses the event
        log.error(
            "Failed to hand off %s event: %s",
            event_type.value,
            str(e),
            exc_info=True,
            extra={"event_type": event_type.value, "reason": "dispatch_error"},
        )
    return fields


# === OPEN ===

@router.get("/open/{data}/{sig}")
async def track_open(
    request: Request,
    data: str,
    sig: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
) -> Response:
    """Open pixel. Always 200 with the GIF, whatever happens."""
    try:
        _accept(request, data, sig, EventType.OPEN, codec, dispatcher, log)
    except Exception as e:
        log.error("Open tracking failed: %s", str(e), exc_info=True)
    return pixel_response()


@router.get("/open/{data}", include_in_schema=False)
async def track_open_unsigned(
    request: Request,
    data: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
) -> Response:
    """Legacy unsigned pixel links: served, never recorded."""
    return await track_open(request, data, None, codec, dispatcher, log)


# === CLICK ===

@router.get("/click/{data}/{sig}")
async def track_click(
    request: Request,
    data: str,
    sig: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Record the click and 307 to the link carried in the token."""
    fields = _accept(request, data, sig, EventType.CLICK, codec, dispatcher, log)
    if fields is None or not fields.link_url:
        return bad_link_response()
    return redirect_response(
        enrich_redirect_url(fields.link_url, fields, settings.owned_domains)
    )


@router.get("/click/{data}", include_in_schema=False)
async def track_click_unsigned(
    request: Request,
    data: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
    settings: Settings = Depends(get_settings),
) -> Response:
    return await track_click(request, data, None, codec, dispatcher, log, settings)


# === UNSUBSCRIBE ===

@router.get("/unsubscribe/{data}/{sig}")
async def track_unsubscribe(
    request: Request,
    data: str,
    sig: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
) -> Response:
    """One-click unsubscribe. Suppression itself happens downstream of the event bus."""
    fields = _accept(request, data, sig, EventType.UNSUBSCRIBE, codec, dispatcher, log)
    if fields is None:
        return bad_link_response()
    return unsubscribe_confirmation_response()


@router.get("/unsubscribe/{data}", include_in_schema=False)
async def track_unsubscribe_unsigned(
    request: Request,
    data: str,
    codec: TokenCodec = Depends(get_token_codec),
    dispatcher: PublishDispatcher = Depends(get_dispatcher),
    log: logging.Logger = Depends(get_tracking_logger),
) -> Response:
    return await track_unsubscribe(request, data, None, codec, dispatcher, log)
