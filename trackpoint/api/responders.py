"""
Client-visible responses for the tracking routes.

The open pixel is returned for every open hit, valid or not. Click and unsubscribe
hits with an untrusted token get a generic 400 that reveals nothing about why.
"""
from fastapi import Response, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse

# 1x1 transparent GIF89a, 43 bytes
PIXEL_GIF = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\xff\xff\xff\x00\x00\x00"
    b"!\xf9\x04\x01\x00\x00\x00\x00"
    b",\x00\x00\x00\x00\x01\x00\x01\x00\x00"
    b"\x02\x02D\x01\x00;"
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

BAD_LINK_MESSAGE = "This link is invalid or has expired."

UNSUBSCRIBE_CONFIRMATION_HTML = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>Unsubscribed</title>
<meta name="viewport" content="width=device-width, initial-scale=1"></head>
<body style="font-family: -apple-system, sans-serif; max-width: 600px; margin: 60px auto; text-align: center;">
<h1>You've been unsubscribed</h1>
<p>You will no longer receive these emails from us.</p>
<p>If this was a mistake, contact the sender to be added back.</p>
</body></html>"""


def pixel_response() -> Response:
    return Response(
        content=PIXEL_GIF,
        media_type="image/gif",
        status_code=status.HTTP_200_OK,
        headers=dict(NO_CACHE_HEADERS),
    )


def redirect_response(url: str) -> RedirectResponse:
    return RedirectResponse(
        url=url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Cache-Control": NO_CACHE_HEADERS["Cache-Control"]},
    )


def unsubscribe_confirmation_response() -> HTMLResponse:
    return HTMLResponse(
        content=UNSUBSCRIBE_CONFIRMATION_HTML,
        status_code=status.HTTP_200_OK,
        headers=dict(NO_CACHE_HEADERS),
    )


def bad_link_response() -> PlainTextResponse:
    return PlainTextResponse(
        content=BAD_LINK_MESSAGE,
        status_code=status.HTTP_400_BAD_REQUEST,
        headers={"Cache-Control": NO_CACHE_HEADERS["Cache-Control"]},
    )


def health_response() -> JSONResponse:
    return JSONResponse(content={"status": "ok"}, status_code=status.HTTP_200_OK)
