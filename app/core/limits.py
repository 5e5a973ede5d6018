"""
Rate limiting (slowapi, in-memory storage)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """IP клиента с учетом proxy"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Ответ 429 в общем формате ошибок"""
    logger.warning(
        f"Rate limit exceeded: {request.method} {request.url.path}",
        extra={"path": request.url.path, "limit": str(exc.detail)},
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMITED",
            "message": f"Rate limit exceeded: {exc.detail}",
            "details": {},
            "path": request.url.path,
        },
        headers={"Retry-After": "60"},
    )
