"""
Error handling and sanitization

- RateQuoteError subclasses -> their own status and {"error", "detail"} envelope
- Anything unexpected -> 500 envelope, traceback logged only
- Upstream bodies are already truncated by the exceptions themselves
"""
import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.exceptions import RateQuoteError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_CODE = "falha_no_proxy"
GENERIC_FAILURE_DETAIL = "Falha inesperada no proxy. Tente novamente em instantes."
MAX_DETAIL_CHARS = 200

# Fragments that must never reach the storefront: Yampi auth headers,
# tenant API paths and Python internals
SENSITIVE_PATTERNS = (
    "secret",
    "token",
    "credential",
    "/v2/",
    "traceback",
    "file \"",
    "/app/",
    "\\app\\",
)


def is_sensitive_error(message: str) -> bool:
    lowered = message.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """
    Client-safe text for an unexpected error.

    Outside DEBUG the detail is always the generic one. In DEBUG the raw
    message is returned, unless it carries credentials or tenant paths, and
    is cut to MAX_DETAIL_CHARS.
    """
    if not settings.DEBUG:
        return GENERIC_FAILURE_DETAIL

    message = error if isinstance(error, str) else str(error)

    if is_sensitive_error(message):
        return GENERIC_FAILURE_DETAIL

    if len(message) > MAX_DETAIL_CHARS:
        return message[:MAX_DETAIL_CHARS] + "..."

    return message


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "-"


async def rate_quote_error_handler(request: Request, exc: RateQuoteError) -> JSONResponse:
    """Map pipeline errors to the storefront error envelope."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"[{_request_id(request)}] {request.method} {request.url.path} -> {exc.status_code}: {exc.to_dict()}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
        headers={"Cache-Control": "no-store"},
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Last-resort handler: anything that escapes the route becomes the
    ``falha_no_proxy`` envelope, with the traceback kept in the logs.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(
                f"[{_request_id(request)}] Unhandled {type(e).__name__} on "
                f"{request.method} {request.url.path}: {e}\n{traceback.format_exc()}"
            )
            return JSONResponse(
                status_code=500,
                content={"error": GENERIC_FAILURE_CODE, "detail": sanitize_error_message(e)},
                headers={"Cache-Control": "no-store"},
            )
