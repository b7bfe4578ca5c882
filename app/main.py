"""
Yampi Shipping Proxy
FastAPI application entry point

- Shopify App Proxy target for shipping quotes (POST /proxy)
- One Yampi HTTP client and one SKU cache per process, built in the lifespan
- Error envelope {"error", "detail"} for every failure
- Request ids and durations on every response
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded

from app.api.routes import shipping
from app.core.config import Settings, settings
from app.core.error_handler import ErrorSanitizationMiddleware, rate_quote_error_handler
from app.core.exceptions import RateQuoteError
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.core.request_context import RequestContextMiddleware
from app.core.utils import utcnow
from app.services.catalog_gateway import CatalogGateway
from app.services.quote_gateway import QuoteGateway
from app.services.rate_pipeline import RatePipeline
from app.services.sku_cache import SkuIdCache
from app.services.yampi_client import YampiClient, YampiCredentials

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_pipeline(
    config: Settings,
    cache: Optional[SkuIdCache] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RatePipeline:
    """Wire the Yampi client, gateways and SKU cache into a pipeline."""
    client = YampiClient(
        YampiCredentials(
            base_url=config.YAMPI_BASE_URL,
            alias=config.YAMPI_ALIAS,
            user_token=config.YAMPI_USER_TOKEN,
            secret_key=config.YAMPI_SECRET_KEY,
        ),
        timeout_seconds=config.YAMPI_TIMEOUT_SECONDS,
        transport=transport,
    )
    cache = cache if cache is not None else SkuIdCache(ttl_seconds=config.SKU_CACHE_TTL_SECONDS)
    return RatePipeline(
        catalog=CatalogGateway(client, cache),
        quotes=QuoteGateway(client),
        cache=cache,
        resolution_mode=config.SKU_RESOLUTION_MODE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the process-wide pipeline; close the Yampi client on shutdown."""
    pipeline = build_pipeline(settings)
    app.state.rate_pipeline = pipeline
    app.state.sku_cache = pipeline.cache
    logger.info(
        f"[startup] {settings.APP_NAME} ({settings.ENVIRONMENT}) -> "
        f"{settings.YAMPI_BASE_URL}/v2/{settings.YAMPI_ALIAS or '<alias>'}, "
        f"resolution={settings.SKU_RESOLUTION_MODE}"
    )

    yield

    await pipeline.quotes.client.close()
    logger.info("Yampi HTTP client closed")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="Shipping quotes for the Shopify storefront, powered by Yampi",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(RateQuoteError, rate_quote_error_handler)

# Error sanitization (catches unhandled exceptions)
app.add_middleware(ErrorSanitizationMiddleware)

# Request id + duration; outside the sanitizer so 500s are tagged too
app.add_middleware(RequestContextMiddleware)

# CORS - storefront domains by regex plus an explicit allowlist
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(shipping.router)


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def root():
    return """
    <h1>Yampi Shipping Proxy</h1>
    <p>Status: OK</p>
    <ul>
      <li>GET <code>/healthz</code></li>
      <li>GET <code>/proxy</code> (ping)</li>
      <li>POST <code>/proxy</code> (cotação)</li>
    </ul>
    """


@app.get("/healthz", response_class=PlainTextResponse, tags=["Health"])
async def healthz():
    return "ok"


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus config presence and SKU cache stats."""
    cache: Optional[SkuIdCache] = getattr(app.state, "sku_cache", None)
    missing = settings.missing_yampi_settings()
    return {
        "status": "healthy" if not missing else "degraded",
        "timestamp": utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "yampi_configured": not missing,
        "missing_settings": missing,
        "sku_cache": cache.get_stats() if cache else None,
    }
