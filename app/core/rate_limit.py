"""
Rate Limiting Configuration

SlowAPI, in memory, keyed by client IP. Each quote fans out to two or three
Yampi calls, so POST /proxy is limited to keep one storefront visitor from
exhausting the tenant's Yampi allowance.
"""
import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """Left-most X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(key_func=get_client_ip, enabled=settings.RATE_LIMIT_ENABLED)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the proxy's {"error", "detail"} envelope."""
    logger.warning(f"[RATE_LIMIT] {get_client_ip(request)} exceeded {exc.detail} on {request.url.path}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": f"Muitas requisições ({exc.detail}). Tente novamente em instantes.",
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS), "Cache-Control": "no-store"},
    )


def get_quote_limit():
    return limiter.limit(settings.RATE_LIMIT_QUOTE)
