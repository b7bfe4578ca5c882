"""
Shipping Schemas for the Yampi rate-quote proxy

Pydantic models for the proxy's responses. Request bodies are deliberately
not modelled: the storefront sends several shapes, see
``app.services.cart_normalizer``.
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field


# ==================== Rate Schemas ====================


class NormalizedRate(BaseModel):
    """A single shipping option as the checkout widget displays it."""
    name: str
    code: Union[str, int, float] = ""
    price: Optional[Union[int, float]] = Field(None, description="Price in cents")
    formatted_price: str = ""
    deadline: str = Field("", description='"até N dias", empty when unknown')


class RateQuoteMeta(BaseModel):
    posting_max_days: int = 0
    took_ms: int = 0
    request_id: Optional[str] = None


class RateQuoteResponse(BaseModel):
    """List of available shipping rates."""
    rates: List[NormalizedRate]
    meta: RateQuoteMeta


# ==================== Misc Schemas ====================


class ErrorResponse(BaseModel):
    error: str
    detail: str


class PingResponse(BaseModel):
    ok: bool = True
    message: str = "Proxy ativo!"
    ts: datetime
