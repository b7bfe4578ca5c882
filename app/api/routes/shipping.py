"""
Shipping quote routes (Shopify App Proxy target)

- GET  /proxy: liveness ping for the storefront widget
- POST /proxy: quote shipping for a cart through Yampi
"""
import json
import logging
from typing import Any, Dict
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import get_rate_pipeline
from app.core.rate_limit import get_quote_limit
from app.core.utils import utcnow
from app.schemas.shipping import ErrorResponse, PingResponse, RateQuoteResponse
from app.services.rate_pipeline import RatePipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy", tags=["shipping"])


async def read_body(request: Request) -> Dict[str, Any]:
    """
    JSON or urlencoded body as a dict; anything unreadable is an empty body.

    Urlencoded bodies are flat: bracketed keys are not expanded.
    """
    raw = await request.body()
    if not raw:
        return {}

    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace")))

    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring unparseable body ({content_type or 'no content-type'})")
        return {}
    return body if isinstance(body, dict) else {}


@router.get("", response_model=PingResponse)
async def ping():
    return PingResponse(ts=utcnow())


@router.post(
    "",
    response_model=RateQuoteResponse,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
@get_quote_limit()
async def quote_rates(
    request: Request,
    response: Response,
    pipeline: RatePipeline = Depends(get_rate_pipeline),
):
    """
    Quote shipping for the cart in the request body.

    Errors are raised as RateQuoteError and rendered by the app's
    exception handler.
    """
    body = await read_body(request)
    request_id = getattr(request.state, "request_id", None)

    result = await pipeline.compute_rates(body, request_id=request_id)

    response.headers["Cache-Control"] = "no-store"
    return result
