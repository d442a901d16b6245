"""Expiring, usage-counted download tokens for PDF reports."""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.exceptions import NotFoundError, TokenExpiredError, TokenInvalidError
from app.services.AssessmentStore import AssessmentStore
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_secure_token() -> str:
    """64 lowercase hex characters from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def build_download_url(token: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.APP_BASE_URL).rstrip("/")
    return f"{base}/api/v1/download/pdf/{token}"


async def issue_download_token(
    store: AssessmentStore,
    assessment_id: str,
    participant_email: str,
    now: Optional[datetime] = None,
    expiry_days: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Mint a new active token for an existing assessment.

    Raises:
        NotFoundError: the assessment does not exist
        BackendError: the token could not be stored

    Returns:
        dict with token, expiresAt (datetime) and downloadUrl
    """
    now = now or utcnow()
    # Raises NotFoundError for unknown assessments
    await store.get_assessment_record(assessment_id)

    token = generate_secure_token()
    expires_at = now + timedelta(days=expiry_days or settings.PDF_TOKEN_EXPIRY_DAYS)
    await store.insert_download_token(
        token=token,
        assessment_id=assessment_id,
        participant_email=participant_email,
        expires_at=expires_at,
    )
    logger.info(f"🔑 Download token issued for assessment {assessment_id}, expires {expires_at.isoformat()}")

    return {
        "token": token,
        "expiresAt": expires_at,
        "downloadUrl": build_download_url(token),
    }


async def validate_download_token(
    store: AssessmentStore, token: str, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Return the active token row, or raise.

    An expired token is deactivated before ``TokenExpiredError`` is raised,
    so later lookups see it as invalid.
    """
    now = now or utcnow()
    row = await store.get_active_download_token(token)
    if not row:
        raise TokenInvalidError()

    if now > row["expires_at"]:
        await store.deactivate_download_token(token)
        logger.info(f"⌛ Download token for assessment {row['assessment_id']} expired")
        raise TokenExpiredError()

    return row


async def record_download(store: AssessmentStore, token: str, now: Optional[datetime] = None) -> None:
    """Count one successful download. Concurrent downloads may race; no cap applies."""
    await store.increment_download_count(token, now or utcnow())


async def revoke_download_token(store: AssessmentStore, token: str) -> None:
    if not await store.get_download_token(token):
        raise NotFoundError("Download token not found")
    await store.deactivate_download_token(token)
    logger.info("🚫 Download token revoked")


async def cleanup_expired_tokens(store: AssessmentStore, now: Optional[datetime] = None) -> int:
    """Deactivate every active token past its expiry; returns how many changed."""
    count = await store.deactivate_expired_tokens(now or utcnow())
    logger.info(f"🧹 Deactivated {count} expired download tokens")
    return count


async def get_token_stats(store: AssessmentStore, assessment_id: str) -> Optional[Dict[str, Any]]:
    """Usage of the newest active token of an assessment, or None."""
    row = await store.get_latest_token_stats(assessment_id)
    if not row:
        return None
    return {
        "downloadCount": row["download_count"],
        "lastDownloadedAt": row["last_downloaded_at"],
        "createdAt": row["created_at"],
    }
