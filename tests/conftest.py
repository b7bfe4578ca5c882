"""
Pytest configuration and fixtures for the Yampi shipping proxy tests.
"""
import json
import os
from typing import Callable, Dict, List
from unittest.mock import AsyncMock

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["YAMPI_BASE_URL"] = "https://api.yampi.test"
os.environ["YAMPI_ALIAS"] = "loja-teste"
os.environ["YAMPI_USER_TOKEN"] = "test-user-token"
os.environ["YAMPI_SECRET_KEY"] = "test-secret-key"

import httpx  # noqa: E402

from app.services.catalog_gateway import CatalogGateway  # noqa: E402
from app.services.quote_gateway import QuoteGateway  # noqa: E402
from app.services.rate_pipeline import RatePipeline  # noqa: E402
from app.services.sku_cache import SkuIdCache  # noqa: E402
from app.services.yampi_client import YampiClient, YampiCredentials  # noqa: E402

# Recorded Cloudflare firewall responses (trimmed)
CLOUDFLARE_1020_HTML = """<!DOCTYPE html>
<html lang="en-US"><head><title>Access denied | api.yampi.com.br used Cloudflare to restrict access</title></head>
<body><div id="cf-wrapper"><h1 data-translate="block_headline">Sorry, you have been blocked</h1>
<h2 class="cf-subheadline">You are unable to access yampi.com.br</h2>
<span class="cf-error-code">1020</span>
<span data-translate="error">Error</span> <span>Ray ID: 8a1b2c3d4e5f6789</span></div></body></html>"""
CLOUDFLARE_1020_PLAIN = "error code: 1020"
YAMPI_403_JSON = json.dumps({"message": "This action is unauthorized.", "status": 403})


class FakeClock:
    """Deterministic monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingHandler:
    """httpx.MockTransport handler that records every request."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sku_cache(fake_clock) -> SkuIdCache:
    return SkuIdCache(ttl_seconds=600, clock=fake_clock)


@pytest.fixture
def yampi_credentials() -> YampiCredentials:
    return YampiCredentials(
        base_url="https://api.yampi.test",
        alias="loja-teste",
        user_token="test-user-token",
        secret_key="test-secret-key",
    )


@pytest.fixture
def make_yampi_client(yampi_credentials):
    """Build a YampiClient whose HTTP calls go to a MockTransport handler."""
    def _make(responder: Callable[[httpx.Request], httpx.Response], timeout_seconds: float = 5.0):
        handler = responder if isinstance(responder, RecordingHandler) else RecordingHandler(responder)
        client = YampiClient(
            yampi_credentials,
            timeout_seconds=timeout_seconds,
            transport=httpx.MockTransport(handler),
        )
        return client, handler

    return _make


@pytest.fixture
def mock_catalog() -> AsyncMock:
    """Stub catalog gateway: no posting days, no SKU codes."""
    catalog = AsyncMock(spec=CatalogGateway)
    catalog.lookup_by_identifiers = AsyncMock(return_value={})
    catalog.lookup_by_codes = AsyncMock(return_value={})
    return catalog


@pytest.fixture
def mock_quotes() -> AsyncMock:
    """Stub quote gateway returning one PAC service."""
    quotes = AsyncMock(spec=QuoteGateway)
    quotes.quote = AsyncMock(return_value=[
        {"price": 1500, "delivery_time": 3, "service_name": "PAC"},
    ])
    return quotes


@pytest.fixture
def stub_pipeline(mock_catalog, mock_quotes, sku_cache) -> RatePipeline:
    return RatePipeline(catalog=mock_catalog, quotes=mock_quotes, cache=sku_cache)


def _route_by_path(routes: Dict[str, Callable[[httpx.Request], httpx.Response]]):
    def _respond(request: httpx.Request) -> httpx.Response:
        for suffix, responder in routes.items():
            if request.url.path.endswith(suffix):
                return responder(request)
        return httpx.Response(404, json={"message": "not found"})

    return _respond


@pytest.fixture
def yampi_router():
    """Dispatch MockTransport requests by URL path suffix."""
    return _route_by_path


@pytest.fixture
def cloudflare_bodies() -> Dict[str, str]:
    return {
        "html": CLOUDFLARE_1020_HTML,
        "plain": CLOUDFLARE_1020_PLAIN,
        "yampi_json": YAMPI_403_JSON,
    }
