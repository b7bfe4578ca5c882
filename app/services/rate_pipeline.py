"""
Rate aggregation pipeline

normalize cart -> resolve Yampi SKU ids -> quote + posting days -> rates

Any failure before the final merge aborts the whole quote; the merge itself
never fails, missing vendor fields fall back to defaults.
"""
import asyncio
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from app.core.exceptions import EmptyIdentifierSet, NoIdentifierSource, SkuNotFound
from app.schemas.shipping import NormalizedRate, RateQuoteMeta, RateQuoteResponse
from app.services.cart_normalizer import CartItem, normalize_cart
from app.services.catalog_gateway import CatalogGateway
from app.services.field_extractors import (
    extract_delivery_days,
    extract_formatted_price,
    extract_price,
    extract_service_code,
    extract_service_name,
)
from app.services.quote_gateway import QuoteGateway
from app.services.sku_cache import SkuIdCache

logger = logging.getLogger(__name__)

RESOLUTION_PER_ITEM = "per_item"
RESOLUTION_LEGACY = "legacy"

_CENT = Decimal("0.01")


def cents_to_brl(cents: Union[int, float]) -> str:
    """1990 -> "R$ 19,90" (no thousands separator)."""
    reais = (Decimal(str(cents)) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"R$ {reais}".replace(".", ",")


def render_deadline(total_days: int) -> str:
    if total_days <= 0:
        return ""
    return f"até {total_days} dia{'s' if total_days > 1 else ''}"


def normalize_rate(service: Mapping[str, Any], posting_max: int = 0) -> NormalizedRate:
    price = extract_price(service)
    total_days = extract_delivery_days(service) + max(0, posting_max)

    return NormalizedRate(
        name=extract_service_name(service),
        code=extract_service_code(service),
        price=price,
        formatted_price=cents_to_brl(price) if price is not None else extract_formatted_price(service),
        deadline=render_deadline(total_days),
    )


def normalize_rates(services: Iterable[Mapping[str, Any]], posting_max: int = 0) -> List[NormalizedRate]:
    return [normalize_rate(service, posting_max) for service in services]


def posting_max_for(sku_ids: Iterable[int], posting_days: Mapping[int, int]) -> int:
    """Largest posting time among the SKUs in the cart."""
    return max((max(0, posting_days.get(sku_id, 0)) for sku_id in sku_ids), default=0)


def _expand(sku_id: int, quantity: int) -> List[int]:
    return [sku_id] * quantity


class RatePipeline:
    """
    Orchestrates one quote.

    The SKU cache is shared across requests; everything else is per call.
    """

    def __init__(
        self,
        catalog: CatalogGateway,
        quotes: QuoteGateway,
        cache: SkuIdCache,
        resolution_mode: str = RESOLUTION_PER_ITEM,
    ):
        self.catalog = catalog
        self.quotes = quotes
        self.cache = cache
        self.resolution_mode = resolution_mode

    async def _resolve_codes(self, codes: Sequence[str]) -> Dict[str, int]:
        """
        Cache first, then one batched products lookup for the misses.

        Raises:
            SkuNotFound: any code still unresolved; partial carts are never quoted
        """
        unique = list(dict.fromkeys(codes))
        resolved: Dict[str, int] = {}
        missing: List[str] = []

        for code in unique:
            cached = self.cache.get(code)
            if cached is not None:
                resolved[code] = cached
            else:
                missing.append(code)

        if missing:
            logger.debug(f"SKU cache miss for {missing}")
            resolved.update(await self.catalog.lookup_by_codes(missing))

        not_found = [code for code in unique if code not in resolved]
        if not_found:
            logger.warning(f"SKU codes not found in Yampi: {not_found}")
            raise SkuNotFound(not_found)

        return resolved

    async def _resolve_per_item(self, items: Sequence[CartItem]) -> List[int]:
        codes = [item.sku for item in items if not item.has_sku_id and item.sku]
        if not codes and not any(item.has_sku_id for item in items):
            raise NoIdentifierSource()

        resolved = await self._resolve_codes(codes) if codes else {}

        sku_ids: List[int] = []
        for item in items:
            if item.has_sku_id:
                sku_ids.extend(_expand(item.sku_id, item.quantity))
            elif item.sku:
                sku_ids.extend(_expand(resolved[item.sku], item.quantity))
            else:
                logger.info("Dropping cart item with neither sku_id nor sku")
        return sku_ids

    async def _resolve_legacy(self, items: Sequence[CartItem]) -> List[int]:
        sku_ids: List[int] = []
        for item in items:
            if item.has_sku_id:
                sku_ids.extend(_expand(item.sku_id, item.quantity))

        if sku_ids:
            dropped = [item.sku for item in items if not item.has_sku_id and item.sku]
            if dropped:
                logger.warning(f"Legacy resolution ignoring code-only items: {dropped}")
            return sku_ids

        codes = [item.sku for item in items if item.sku]
        if not codes:
            raise NoIdentifierSource()

        resolved = await self._resolve_codes(codes)
        for item in items:
            if item.sku:
                sku_ids.extend(_expand(resolved[item.sku], item.quantity))
        return sku_ids

    async def resolve_identifiers(self, items: Sequence[CartItem]) -> List[int]:
        """
        Yampi SKU ids for the cart, one entry per unit, in cart order.

        Raises:
            NoIdentifierSource, SkuNotFound, EmptyIdentifierSet
            (plus catalog errors from the code lookup)
        """
        if self.resolution_mode == RESOLUTION_LEGACY:
            sku_ids = await self._resolve_legacy(items)
        else:
            sku_ids = await self._resolve_per_item(items)

        if not sku_ids:
            raise EmptyIdentifierSet()
        return sku_ids

    async def compute_rates(self, body: Any, request_id: Optional[str] = None) -> RateQuoteResponse:
        started = time.perf_counter()

        cart = normalize_cart(body)
        sku_ids = await self.resolve_identifiers(cart.items)
        distinct_ids = list(dict.fromkeys(sku_ids))

        quote_result, posting_result = await asyncio.gather(
            self.quotes.quote(cart.postal_code, sku_ids),
            self.catalog.lookup_by_identifiers(distinct_ids),
            return_exceptions=True,
        )
        for outcome in (quote_result, posting_result):
            if isinstance(outcome, BaseException):
                raise outcome

        posting_max = posting_max_for(distinct_ids, posting_result)
        rates = normalize_rates(quote_result, posting_max)
        took_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"[{request_id or '-'}] Quoted {len(rates)} rates for CEP {cart.postal_code}, "
            f"{len(sku_ids)} units, posting_max={posting_max}d in {took_ms}ms"
        )
        return RateQuoteResponse(
            rates=rates,
            meta=RateQuoteMeta(posting_max_days=posting_max, took_ms=took_ms, request_id=request_id),
        )
