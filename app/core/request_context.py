"""
Request context middleware

Tags every request with an id (reusing ``x-request-id`` from the edge when
present) and reports the handling time, so proxy logs and storefront
reports can be correlated.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
DURATION_HEADER = "x-request-duration"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        request.state.started_at = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - request.state.started_at) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[DURATION_HEADER] = f"{elapsed_ms:.1f}ms"
        logger.debug(
            f"[{request_id}] {request.method} {request.url.path} -> "
            f"{response.status_code} in {elapsed_ms:.1f}ms"
        )
        return response
