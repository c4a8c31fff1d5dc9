"""
Client IP extraction utility.

Update telemetry records the address of the updater, which is usually
behind a reverse proxy. Proxy headers are consulted in order:
X-Forwarded-For (first hop), then X-Real-IP, then the socket peer.

Note: When Uvicorn runs with --proxy-headers and --forwarded-allow-ips,
request.client.host already reflects X-Forwarded-For.
"""

from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the originating client IP address from a request.

    Args:
        request: FastAPI/Starlette Request object

    Returns:
        Client IP address string, or None if unavailable
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return request.client.host if request.client else None
