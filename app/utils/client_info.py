from typing import Dict, Optional

from fastapi import Request

DEFAULT_IP = "127.0.0.1"


def get_client_info(request: Request) -> Dict[str, Optional[str]]:
    """Real client IP behind proxies (Cloudflare first) and the user agent."""
    headers = request.headers
    ip_address = headers.get("cf-connecting-ip") or headers.get("x-real-ip")
    if not ip_address:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip() or DEFAULT_IP
    if not ip_address:
        ip_address = request.client.host if request.client else DEFAULT_IP

    return {
        "ip_address": ip_address,
        "user_agent": headers.get("user-agent"),
    }
