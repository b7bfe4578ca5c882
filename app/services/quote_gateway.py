"""
Yampi shipping-costs quote

The ``skus_ids`` list must repeat each id once per unit in the cart:
Yampi derives weight and dimensions from it, so a deduplicated list
under-quotes multi-unit carts.
"""
import logging
from typing import Any, Dict, List, Sequence

from app.core.exceptions import QuoteBlocked, QuoteFailed, QuoteTimeout
from app.services.cart_normalizer import normalize_postal_code
from app.services.yampi_client import (
    UpstreamOutcome,
    YampiClient,
    YampiTimeoutError,
    YampiTransportError,
    classify_response,
    response_json,
)

logger = logging.getLogger(__name__)

SHIPPING_COSTS_PATH = "/logistics/shipping-costs"
QUOTE_ORIGIN = "cart"


def read_services(payload: Any) -> List[Dict[str, Any]]:
    """``data`` may be a single service object or a list of them."""
    if not isinstance(payload, dict):
        return []
    data = payload.get("data")
    if isinstance(data, list):
        return [service for service in data if isinstance(service, dict)]
    if isinstance(data, dict):
        return [data]
    return []


class QuoteGateway:
    def __init__(self, client: YampiClient):
        self.client = client

    async def quote(self, postal_code: str, sku_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """
        Quote shipping for a cart.

        Args:
            postal_code: destination CEP (non-digits are stripped)
            sku_ids: one entry per unit, repeats included

        Returns:
            Raw service records as sent by Yampi

        Raises:
            QuoteTimeout, QuoteBlocked, QuoteFailed
        """
        body = {
            "zipcode": normalize_postal_code(postal_code),
            "origin": QUOTE_ORIGIN,
            "skus_ids": list(sku_ids),
        }

        try:
            response = await self.client.post(SHIPPING_COSTS_PATH, json=body)
        except YampiTimeoutError as e:
            raise QuoteTimeout(e.timeout_seconds)
        except YampiTransportError as e:
            raise QuoteFailed(body=e.message)

        outcome = classify_response(response.status_code, response.text)
        if outcome is UpstreamOutcome.BLOCKED:
            logger.error("[QUOTE] Blocked by Yampi edge (403)")
            raise QuoteBlocked(upstream_status=response.status_code, body=response.text)
        if outcome is UpstreamOutcome.FAILED:
            logger.error(f"[QUOTE] Failed: {response.status_code} - {response.text[:500]}")
            raise QuoteFailed(upstream_status=response.status_code, body=response.text)

        services = read_services(response_json(response))
        logger.info(f"[QUOTE] {len(services)} services for CEP {body['zipcode']} ({len(body['skus_ids'])} units)")
        return services
