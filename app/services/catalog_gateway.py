"""
Yampi products lookups

Two reads against ``/products``:
- by numeric SKU ids, for posting (handling) days per SKU
- by SKU code, to resolve codes to the numeric ids the quote endpoint needs

Code lookups try ``?skus=`` first and fall back once to ``?sku_codes=``;
tenants on older API versions only accept the latter.
"""
import logging
from typing import Dict, Iterable, List

import httpx

from app.core.exceptions import CatalogBlocked, CatalogLookupFailed
from app.services.field_extractors import (
    PRODUCT_LOOKUP_ID_FIELDS,
    extract_handling_days,
    extract_product_code,
    extract_product_id,
)
from app.services.sku_cache import SkuIdCache
from app.services.yampi_client import (
    UpstreamOutcome,
    YampiClient,
    YampiTransportError,
    classify_response,
    read_product_list,
    response_json,
)

logger = logging.getLogger(__name__)

PRODUCTS_PATH = "/products"
PRIMARY_CODE_PARAM = "skus"
FALLBACK_CODE_PARAM = "sku_codes"


def _unique(values: Iterable) -> List:
    return list(dict.fromkeys(values))


def _raise_for_failure(response: httpx.Response, context: str):
    outcome = classify_response(response.status_code, response.text)
    if outcome is UpstreamOutcome.BLOCKED:
        logger.error(f"[CATALOG] {context} blocked by Yampi edge (403)")
        raise CatalogBlocked(upstream_status=response.status_code, body=response.text)
    logger.error(f"[CATALOG] {context} failed: {response.status_code} - {response.text[:500]}")
    raise CatalogLookupFailed(upstream_status=response.status_code, body=response.text)


class CatalogGateway:
    """Products lookups; resolved codes are written into the SKU cache."""

    def __init__(self, client: YampiClient, cache: SkuIdCache):
        self.client = client
        self.cache = cache

    async def _get_products(self, params: Dict[str, str]) -> httpx.Response:
        try:
            return await self.client.get(PRODUCTS_PATH, params=params)
        except YampiTransportError as e:
            raise CatalogLookupFailed(body=e.message)

    async def lookup_by_identifiers(self, sku_ids: Iterable[int]) -> Dict[int, int]:
        """
        Posting days per Yampi SKU id.

        Returns:
            {sku_id: days}, days clamped to >= 0; empty input makes no call
        """
        unique = _unique(sku_ids)
        if not unique:
            return {}

        response = await self._get_products({"skus_ids": ",".join(str(i) for i in unique)})
        if classify_response(response.status_code, response.text) is not UpstreamOutcome.OK:
            _raise_for_failure(response, "products by id")

        posting_days: Dict[int, int] = {}
        for product in read_product_list(response_json(response)):
            sku_id = extract_product_id(product)
            if sku_id is not None:
                posting_days[sku_id] = extract_handling_days(product)

        logger.debug(f"[CATALOG] Posting days for {len(unique)} ids: {posting_days}")
        return posting_days

    async def lookup_by_codes(self, codes: Iterable[str]) -> Dict[str, int]:
        """
        Resolve SKU codes to Yampi SKU ids.

        Codes missing from the response are simply absent from the result;
        deciding whether that is fatal is up to the caller.
        """
        unique = _unique(code for code in codes if code)
        if not unique:
            return {}

        joined = ",".join(unique)
        response = await self._get_products({PRIMARY_CODE_PARAM: joined})

        if classify_response(response.status_code, response.text) is not UpstreamOutcome.OK:
            logger.warning(
                f"[CATALOG] ?{PRIMARY_CODE_PARAM}= lookup returned {response.status_code}, "
                f"retrying with ?{FALLBACK_CODE_PARAM}="
            )
            response = await self._get_products({FALLBACK_CODE_PARAM: joined})
            if classify_response(response.status_code, response.text) is not UpstreamOutcome.OK:
                _raise_for_failure(response, "products by SKU code")

        resolved: Dict[str, int] = {}
        for product in read_product_list(response_json(response)):
            code = extract_product_code(product)
            sku_id = extract_product_id(product, PRODUCT_LOOKUP_ID_FIELDS)
            if code and sku_id is not None:
                resolved[code] = sku_id

        for code, sku_id in resolved.items():
            self.cache.set(code, sku_id)

        logger.info(f"[CATALOG] Resolved {len(resolved)}/{len(unique)} SKU codes")
        return resolved
