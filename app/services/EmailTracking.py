"""
Email engagement tracking: open pixel and click redirect.

Both endpoints must never fail towards the mail client, so every backend
error is logged and swallowed here.
"""

import base64
import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote, unquote, urlencode, urlparse

from app.core.config import settings
from app.core.exceptions import AssessmentServiceError
from app.services.AssessmentStore import AssessmentStore
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
TRACKING_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_HREF_PATTERN = re.compile(r'href="(https?://[^"]+)"', re.IGNORECASE)


async def track_open(store: AssessmentStore, tracking_id: Optional[str], now: Optional[datetime] = None) -> bool:
    """Record the first open of an email. Returns whether a row changed."""
    if not tracking_id:
        return False
    try:
        updated = await store.mark_email_opened(tracking_id, now or utcnow())
        if updated:
            logger.info(f"📬 Email opened, tracking id {tracking_id}")
        return updated
    except AssessmentServiceError as e:
        logger.error(f"❌ Open tracking failed for {tracking_id}: {e}")
    except Exception as e:
        logger.error(f"❌ Unexpected open tracking error for {tracking_id}: {e}")
    return False


def resolve_redirect_target(url: Optional[str]) -> str:
    """Decoded target when it is an absolute http(s) URL, else the default redirect."""
    if not url:
        return settings.TRACKING_DEFAULT_REDIRECT
    target = unquote(url)
    parsed = urlparse(target)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return target
    return settings.TRACKING_DEFAULT_REDIRECT


async def track_click(
    store: AssessmentStore,
    tracking_id: Optional[str],
    url: Optional[str],
    now: Optional[datetime] = None,
) -> str:
    """Record the first click and return where to redirect. Never raises."""
    if not tracking_id or not url:
        logger.info("Missing tracking parameters")
        return settings.TRACKING_DEFAULT_REDIRECT

    try:
        if await store.mark_email_clicked(tracking_id, now or utcnow()):
            logger.info(f"🖱️ Email link clicked, tracking id {tracking_id}")
    except AssessmentServiceError as e:
        logger.error(f"❌ Click tracking failed for {tracking_id}: {e}")
    except Exception as e:
        logger.error(f"❌ Unexpected click tracking error for {tracking_id}: {e}")

    return resolve_redirect_target(url)


def build_open_pixel_url(tracking_id: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.APP_BASE_URL).rstrip("/")
    return f"{base}/api/v1/email/track/open?{urlencode({'trackingId': tracking_id})}"


def build_click_url(tracking_id: str, target_url: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.APP_BASE_URL).rstrip("/")
    return (
        f"{base}/api/v1/email/track/click"
        f"?trackingId={quote(tracking_id, safe='')}&url={quote(target_url, safe='')}"
    )


def inject_tracking(html: str, tracking_id: str, base_url: Optional[str] = None) -> str:
    """Rewrite absolute links through the click redirect and append the open pixel."""
    rewritten = _HREF_PATTERN.sub(
        lambda m: f'href="{build_click_url(tracking_id, m.group(1), base_url)}"',
        html,
    )
    pixel = (
        f'<img src="{build_open_pixel_url(tracking_id, base_url)}" '
        'width="1" height="1" alt="" style="display:none;" />'
    )
    if "</body>" in rewritten:
        return rewritten.replace("</body>", f"{pixel}</body>", 1)
    return rewritten + pixel
