"""
Tests for Yampi products lookups (posting days and SKU code resolution).
"""
import httpx
import pytest

from app.core.exceptions import CatalogBlocked, CatalogLookupFailed
from app.services.catalog_gateway import CatalogGateway


@pytest.fixture
def make_gateway(make_yampi_client, sku_cache):
    def _make(responder):
        client, handler = make_yampi_client(responder)
        return CatalogGateway(client, sku_cache), handler

    return _make


class TestLookupByIdentifiers:
    """GET /products?skus_ids= for posting days."""

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self, make_gateway):
        gateway, handler = make_gateway(lambda request: httpx.Response(500))

        assert await gateway.lookup_by_identifiers([]) == {}
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_ids_are_deduplicated_in_order(self, make_gateway):
        gateway, handler = make_gateway(lambda request: httpx.Response(200, json={"data": []}))

        await gateway.lookup_by_identifiers([42, 7, 42, 7, 9])

        assert len(handler.requests) == 1
        assert handler.requests[0].url.params["skus_ids"] == "42,7,9"

    @pytest.mark.asyncio
    async def test_posting_days_per_id(self, make_gateway):
        products = [
            {"id": 42, "posting_days": 2},
            {"id": "7", "lead_time": "5"},
            {"sku_id": 9, "production_time_days": -1},
            {"id": 10},
            {"sku": "no-id", "posting_days": 8},
        ]
        gateway, _ = make_gateway(lambda request: httpx.Response(200, json={"data": products}))

        result = await gateway.lookup_by_identifiers([42, 7, 9, 10])

        assert result == {42: 2, 7: 5, 9: 0, 10: 0}

    @pytest.mark.asyncio
    async def test_bare_array_payload(self, make_gateway):
        gateway, _ = make_gateway(lambda request: httpx.Response(200, json=[{"id": 1, "handling_time": 3}]))

        assert await gateway.lookup_by_identifiers([1]) == {1: 3}

    @pytest.mark.asyncio
    async def test_blocked(self, make_gateway, cloudflare_bodies):
        gateway, _ = make_gateway(lambda request: httpx.Response(403, text=cloudflare_bodies["html"]))

        with pytest.raises(CatalogBlocked) as exc_info:
            await gateway.lookup_by_identifiers([1])

        assert exc_info.value.code == "yampi_cloudflare_block"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_failed(self, make_gateway):
        gateway, _ = make_gateway(lambda request: httpx.Response(500, text="Internal Server Error"))

        with pytest.raises(CatalogLookupFailed) as exc_info:
            await gateway.lookup_by_identifiers([1])

        assert exc_info.value.code == "yampi_api_error"
        assert exc_info.value.upstream_status == 500
        assert exc_info.value.message.startswith("PROD_LOOKUP_500: ")

    @pytest.mark.asyncio
    async def test_transport_error(self, make_gateway):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway, _ = make_gateway(refuse)

        with pytest.raises(CatalogLookupFailed) as exc_info:
            await gateway.lookup_by_identifiers([1])

        assert exc_info.value.upstream_status is None
        assert exc_info.value.message.startswith("PROD_LOOKUP_ERR: ")


class TestLookupByCodes:
    """GET /products?skus= with a single ?sku_codes= fallback."""

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, make_gateway, sku_cache):
        products = [{"id": 42, "sku": "ABC"}, {"id": 43, "code": "DEF"}]
        gateway, handler = make_gateway(lambda request: httpx.Response(200, json={"data": products}))

        result = await gateway.lookup_by_codes(["ABC", "DEF", "ABC"])

        assert result == {"ABC": 42, "DEF": 43}
        assert handler.requests[0].url.params["skus"] == "ABC,DEF"
        assert sku_cache.get("ABC") == 42
        assert sku_cache.get("DEF") == 43

    @pytest.mark.asyncio
    async def test_unknown_codes_are_absent(self, make_gateway, sku_cache):
        gateway, _ = make_gateway(lambda request: httpx.Response(200, json={"data": [{"id": 42, "sku": "ABC"}]}))

        result = await gateway.lookup_by_codes(["ABC", "ZZZ"])

        assert result == {"ABC": 42}
        assert "ZZZ" not in sku_cache

    @pytest.mark.asyncio
    async def test_product_without_numeric_id_is_skipped(self, make_gateway):
        gateway, _ = make_gateway(lambda request: httpx.Response(200, json={"data": [{"sku": "ABC"}]}))

        assert await gateway.lookup_by_codes(["ABC"]) == {}

    @pytest.mark.asyncio
    async def test_empty_codes_make_no_call(self, make_gateway):
        gateway, handler = make_gateway(lambda request: httpx.Response(500))

        assert await gateway.lookup_by_codes(["", ""]) == {}
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_falls_back_to_sku_codes(self, make_gateway, sku_cache):
        def respond(request):
            if "skus" in request.url.params:
                return httpx.Response(400, json={"message": "unknown filter"})
            return httpx.Response(200, json={"data": [{"id": 42, "sku": "ABC"}]})

        gateway, handler = make_gateway(respond)

        result = await gateway.lookup_by_codes(["ABC"])

        assert result == {"ABC": 42}
        assert [dict(request.url.params) for request in handler.requests] == [
            {"skus": "ABC"},
            {"sku_codes": "ABC"},
        ]
        assert sku_cache.get("ABC") == 42

    @pytest.mark.asyncio
    async def test_no_fallback_on_success(self, make_gateway):
        gateway, handler = make_gateway(lambda request: httpx.Response(200, json={"data": []}))

        await gateway.lookup_by_codes(["ABC"])

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_both_attempts_fail(self, make_gateway):
        gateway, handler = make_gateway(lambda request: httpx.Response(404, text="Not Found"))

        with pytest.raises(CatalogLookupFailed) as exc_info:
            await gateway.lookup_by_codes(["ABC"])

        assert len(handler.requests) == 2
        assert exc_info.value.upstream_status == 404
        assert exc_info.value.message == "PROD_LOOKUP_404: Not Found"

    @pytest.mark.asyncio
    async def test_fallback_blocked(self, make_gateway, cloudflare_bodies):
        def respond(request):
            if "skus" in request.url.params:
                return httpx.Response(500, text="oops")
            return httpx.Response(403, text=cloudflare_bodies["plain"])

        gateway, _ = make_gateway(respond)

        with pytest.raises(CatalogBlocked):
            await gateway.lookup_by_codes(["ABC"])

    @pytest.mark.asyncio
    async def test_long_upstream_body_is_truncated(self, make_gateway):
        gateway, _ = make_gateway(lambda request: httpx.Response(500, text="x" * 2000))

        with pytest.raises(CatalogLookupFailed) as exc_info:
            await gateway.lookup_by_codes(["ABC"])

        assert len(exc_info.value.body) == 503
        assert exc_info.value.body.endswith("...")
