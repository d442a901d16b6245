"""Security utilities for hashing and verifying the maintenance API key."""

import hashlib
import hmac
from typing import Optional
from .config import settings
from fastapi import Header, HTTPException, status


def hash_key(key: str) -> str:
    """Hash the key using SHA-256."""
    key = key or ""
    return hashlib.sha256(key.encode()).hexdigest()


def verify_api_key(api_key: Optional[str] = None) -> bool:
    """
    Verify the API key hashed is the same as the one in the settings.

    Args:
        - api_key (Optional[str]): The API key to verify.

    Returns:
        - bool: Whether the API key is valid.
    """
    if not api_key:
        return False
    return hmac.compare_digest(hash_key(api_key), settings.HASHED_API_KEY)


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    """
    Dependency guarding the maintenance and analytics routes
    Raises 401 if the X-API-Key header is missing or wrong
    """
    if not verify_api_key(x_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
