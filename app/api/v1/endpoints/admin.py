"""Admin endpoints for maintenance operations."""

import asyncio
import logging

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.exceptions import BackendError, NotFoundError
from app.core.security import require_api_key
from app.services.AssessmentStore import AssessmentStore, assessment_store_scope, get_assessment_store
from app.services.DownloadTokenService import cleanup_expired_tokens, revoke_download_token
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_api_key)]
)


@router.get("/users/{user_id}")
async def get_admin_user(user_id: str):
    """
    Look up an admin profile.

    Each attempt opens its own session and is bounded by
    BACKEND_TIMEOUT_SECONDS; failed attempts are retried with exponential
    backoff up to BACKEND_RETRY_ATTEMPTS times.
    """
    async def fetch():
        # a timed-out attempt rolls back and closes its session on scope exit
        async with assessment_store_scope() as store:
            try:
                return await asyncio.wait_for(
                    store.get_admin_user(user_id),
                    timeout=settings.BACKEND_TIMEOUT_SECONDS
                )
            except asyncio.TimeoutError as e:
                raise BackendError("get_admin_user", f"timed out after {settings.BACKEND_TIMEOUT_SECONDS}s") from e

    user = await retry_async(
        fetch,
        max_attempts=settings.BACKEND_RETRY_ATTEMPTS,
        base_delay=settings.BACKEND_RETRY_BASE_DELAY,
        max_delay=settings.BACKEND_RETRY_MAX_DELAY,
    )
    if not user:
        raise NotFoundError("Admin user not found")

    return {
        "user": {
            "id": user["id"],
            "email": user["email"],
            "name": user["name"],
            "role": user["role"],
            "isActive": user["is_active"],
        }
    }


@router.post("/download-tokens/{token}/revoke")
async def revoke_token(
    token: str,
    store: AssessmentStore = Depends(get_assessment_store)
):
    await revoke_download_token(store, token)
    return {"message": "Download token revoked"}


@router.post("/download-tokens/cleanup")
async def cleanup_tokens(store: AssessmentStore = Depends(get_assessment_store)):
    """Deactivate every active download token past its expiry."""
    count = await cleanup_expired_tokens(store)
    return {"message": "Expired download tokens deactivated", "deactivated": count}
