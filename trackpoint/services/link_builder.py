"""
Tracking link builder - the send-pipeline side of the token codec.

Produces the signed open-pixel, click and unsubscribe URLs this service accepts, and
rewrites outgoing HTML so every external link and the open pixel route through it.
"""
import html as html_lib
import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from trackpoint.schemas.tracking import TokenFields
from trackpoint.services.token_codec import TokenCodec

_HREF_RE = re.compile(r'href="(https?://[^"]+)"', re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body>", re.IGNORECASE)


class TrackingLinkBuilder:
    def __init__(self, codec: TokenCodec, base_url: str):
        self.codec = codec
        self.base_url = base_url.rstrip("/")

    def _url(self, route: str, fields: TokenFields) -> str:
        data = self.codec.encode(fields)
        return f"{self.base_url}/track/{route}/{data}/{self.codec.sign(data)}"

    def open_pixel_url(
        self, org_id: str, campaign_id: str, subscriber_id: str, email_id: str,
    ) -> str:
        fields = TokenFields(
            org_id=org_id,
            campaign_id=campaign_id,
            subscriber_id=subscriber_id,
            email_id=email_id,
        )
        return self._url("open", fields)

    def click_url(
        self,
        org_id: str,
        campaign_id: str,
        subscriber_id: str,
        email_id: Optional[str],
        original_url: str,
    ) -> str:
        fields = TokenFields(
            org_id=org_id,
            campaign_id=campaign_id,
            subscriber_id=subscriber_id,
            email_id=email_id,
            link_url=original_url,
        )
        return self._url("click", fields)

    def unsubscribe_url(self, org_id: str, campaign_id: str, subscriber_id: str) -> str:
        fields = TokenFields(
            org_id=org_id,
            campaign_id=campaign_id,
            subscriber_id=subscriber_id,
        )
        return self._url("unsubscribe", fields)

    def inject_tracking(
        self,
        html: str,
        org_id: str,
        campaign_id: str,
        subscriber_id: str,
        email_id: str,
    ) -> str:
        """
        Add the open pixel before </body> and route external links through click tracking.
        Links already pointing at /track/ (unsubscribe, pre-tracked) are left alone.
        """
        def _rewrite(match: re.Match) -> str:
            original = html_lib.unescape(match.group(1))
            if "/track/" in original:
                return match.group(0)
            tracked = self.click_url(org_id, campaign_id, subscriber_id, email_id, original)
            return f'href="{tracked}"'

        result = _HREF_RE.sub(_rewrite, html)

        pixel = (
            f'<img src="{self.open_pixel_url(org_id, campaign_id, subscriber_id, email_id)}" '
            'width="1" height="1" alt="" style="display:none" />'
        )
        if _BODY_CLOSE_RE.search(result):
            return _BODY_CLOSE_RE.sub(lambda m: pixel + m.group(0), result, count=1)
        return result + pixel


def is_owned_domain(url: str, owned_domains: list[str]) -> bool:
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    return any(host == d or host.endswith("." + d) for d in owned_domains)


def enrich_redirect_url(url: str, fields: TokenFields, owned_domains: list[str]) -> str:
    """
    Append eid/cid/sid to redirects landing on our own properties so the landing page
    can attribute the visit. Other destinations are returned untouched.
    """
    if not owned_domains or not is_owned_domain(url, owned_domains):
        return url

    parts = urlsplit(url)
    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("eid", "cid", "sid")
    ]
    if fields.email_id:
        query.append(("eid", fields.email_id))
    query.append(("cid", fields.campaign_id))
    query.append(("sid", fields.subscriber_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


def list_unsubscribe_headers(unsubscribe_url: str) -> dict[str, str]:
    """RFC 8058 one-click unsubscribe headers."""
    return {
        "List-Unsubscribe": f"<{unsubscribe_url}>",
        "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
    }
