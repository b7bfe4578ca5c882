"""
Yampi API v2 Client

Thin transport for the two Yampi resources the quoting pipeline uses:
- GET  /v2/{alias}/products               (SKU lookups, posting days)
- POST /v2/{alias}/logistics/shipping-costs (rate quotes)

Every call carries the tenant token pair and is bounded by a hard timeout.
Status handling belongs to the gateways; this module only classifies
responses and raises on transport failures.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

# Yampi sits behind Cloudflare; firewall rejections come back as 403 with
# error 1020 or an "Access Denied" page instead of a JSON error
EDGE_BLOCK_PATTERN = re.compile(r"1020|access denied", re.IGNORECASE)

# Cloudflare is stricter with non-browser user agents
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124 Safari/537.36"
)


class UpstreamOutcome(str, Enum):
    OK = "ok"
    BLOCKED = "blocked"
    FAILED = "failed"


def classify_response(status: int, body: Optional[str]) -> UpstreamOutcome:
    """Classify a Yampi response by status code and body."""
    if 200 <= status < 300:
        return UpstreamOutcome.OK
    if status == 403 and body and EDGE_BLOCK_PATTERN.search(body):
        return UpstreamOutcome.BLOCKED
    return UpstreamOutcome.FAILED


@dataclass
class YampiCredentials:
    """Tenant alias and token pair."""
    base_url: str
    alias: str
    user_token: str
    secret_key: str

    @property
    def api_root(self) -> str:
        return f"{self.base_url.rstrip('/')}/v2/{self.alias}"


class YampiTransportError(Exception):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, path: str):
        self.message = message
        self.path = path
        super().__init__(message)


class YampiTimeoutError(YampiTransportError):
    """The request exceeded the client timeout and was aborted."""

    def __init__(self, path: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Yampi {path} timed out after {timeout_seconds:g}s", path)


class YampiClient:
    """
    Yampi API client sharing one connection pool across requests.

    Handles auth headers and timeouts; callers inspect the returned
    ``httpx.Response`` with :func:`classify_response`.
    """

    def __init__(
        self,
        credentials: YampiCredentials,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json, text/plain, */*",
            "Content-Type": "application/json",
            "User-Agent": BROWSER_USER_AGENT,
            "Accept-Language": "pt-BR,pt;q=0.9",
            "User-Token": self.credentials.user_token,
            "User-Secret-Key": self.credentials.secret_key,
        }

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.credentials.api_root,
                headers=self.default_headers,
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send one request; no retries.

        Raises:
            YampiTimeoutError: the whole call took longer than timeout_seconds
            YampiTransportError: connection-level failure
        """
        client = self._get_http_client()
        try:
            response = await asyncio.wait_for(
                client.request(method, path, params=params, json=json),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"Yampi {method} {path} timed out after {self.timeout_seconds:g}s")
            raise YampiTimeoutError(path, self.timeout_seconds)
        except httpx.RequestError as e:
            logger.error(f"Yampi {method} {path} request failed: {e}")
            raise YampiTransportError(f"Network error: {e}", path)

        logger.debug(f"Yampi {method} {path} -> {response.status_code}")
        return response

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self.request("POST", path, json=json)


def read_product_list(payload: Any) -> list:
    """Products come either under ``data`` or as a bare array."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload, list):
        return payload
    return []


def response_json(response: httpx.Response) -> Any:
    """Decode a JSON body, treating malformed bodies as empty."""
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Yampi returned non-JSON body ({response.status_code}): {response.text[:200]}")
        return None
