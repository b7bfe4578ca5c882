"""
Rate Quote Exception Hierarchy

Every error raised by the quoting pipeline carries a wire code, a
human-readable detail and the HTTP status it maps to. Handlers turn them into
the storefront envelope ``{"error": code, "detail": message}``.

Exception Hierarchy:
    RateQuoteError (500)
    ├── CartError (400)
    │   ├── MissingPostalCode
    │   ├── MissingItems
    │   ├── NoIdentifierSource
    │   └── EmptyIdentifierSet
    ├── SkuNotFound (422)
    └── UpstreamError (502)
        ├── CatalogBlocked
        ├── CatalogLookupFailed
        ├── QuoteBlocked
        ├── QuoteFailed
        └── QuoteTimeout
"""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Upstream bodies can be full Cloudflare HTML pages
MAX_BODY_CHARS = 500

BLOCKED_DETAIL = (
    "A Yampi bloqueou a chamada (Cloudflare 1020/403). Solicite whitelist do IP "
    "do servidor ou use infraestrutura localizada no BR."
)


def truncate_body(body: Optional[str], limit: int = MAX_BODY_CHARS) -> str:
    if not body:
        return ""
    if len(body) > limit:
        return body[:limit] + "..."
    return body


class RateQuoteError(Exception):
    """
    Base exception for all rate quote errors.

    Attributes:
        message: Human-readable error description (returned as ``detail``)
        code: Machine-readable error code (returned as ``error``)
        details: Additional context for logging
    """

    default_code: str = "falha_no_proxy"
    default_message: str = "Falha inesperada no proxy"
    status_code: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def to_response(self) -> Dict[str, str]:
        """Client-facing error envelope."""
        return {"error": self.code, "detail": self.message}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# REQUEST ERRORS (400)
# =============================================================================

class CartError(RateQuoteError):
    """The request body cannot be turned into a quotable cart."""
    status_code = 400


class MissingPostalCode(CartError):
    default_code = "postal_code_ausente"
    default_message = "Informe CEP"


class MissingItems(CartError):
    default_code = "itens_ausentes"
    default_message = "Envie items[]"


class NoIdentifierSource(CartError):
    default_code = "nenhum_sku_informado"
    default_message = "Envie 'sku_id_yampi' numérico ou 'sku' string em cada item."


class EmptyIdentifierSet(CartError):
    default_code = "skus_ids_ausentes"
    default_message = "Não foi possível resolver IDs a partir dos itens enviados."


# =============================================================================
# RESOLUTION ERRORS (422)
# =============================================================================

class SkuNotFound(RateQuoteError):
    """One or more SKU codes have no Yampi id."""
    default_code = "sku_nao_encontrado_na_yampi"
    status_code = 422

    def __init__(self, missing: List[str], **kwargs):
        self.missing = list(missing)
        details = kwargs.pop("details", {})
        details["skus"] = self.missing
        message = kwargs.pop("message", None) or (
            f"SKUs não encontrados: {', '.join(self.missing)}"
        )
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# UPSTREAM ERRORS (502)
# =============================================================================

class UpstreamError(RateQuoteError):
    """Base exception for failed Yampi calls."""
    default_code = "yampi_api_error"
    default_message = "Falha na API da Yampi"
    status_code = 502

    def __init__(
        self,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        body: Optional[str] = None,
        **kwargs
    ):
        self.upstream_status = upstream_status
        self.body = truncate_body(body)
        details = kwargs.pop("details", {})
        details.update({
            "upstream_status": upstream_status,
            "body": self.body,
        })
        super().__init__(message, details=details, **kwargs)


class CatalogBlocked(UpstreamError):
    """Products lookup rejected by the Yampi edge (Cloudflare)."""
    default_code = "yampi_cloudflare_block"
    default_message = BLOCKED_DETAIL


class QuoteBlocked(UpstreamError):
    """Shipping-costs call rejected by the Yampi edge (Cloudflare)."""
    default_code = "yampi_cloudflare_block"
    default_message = BLOCKED_DETAIL


class CatalogLookupFailed(UpstreamError):
    """Products lookup returned a non-success status or could not be sent."""

    def __init__(self, upstream_status: Optional[int] = None, body: Optional[str] = None, **kwargs):
        message = kwargs.pop("message", None) or (
            f"PROD_LOOKUP_{upstream_status or 'ERR'}: "
            f"{truncate_body(body) or 'Falha ao buscar produtos'}"
        )
        super().__init__(message, upstream_status=upstream_status, body=body, **kwargs)


class QuoteFailed(UpstreamError):
    """Shipping-costs call returned a non-success status or could not be sent."""

    def __init__(self, upstream_status: Optional[int] = None, body: Optional[str] = None, **kwargs):
        message = kwargs.pop("message", None) or (
            f"QUOTE_{upstream_status or 'ERR'}: {truncate_body(body) or 'Falha ao cotar frete'}"
        )
        super().__init__(message, upstream_status=upstream_status, body=body, **kwargs)


class QuoteTimeout(UpstreamError):
    """Shipping-costs call exceeded its timeout."""

    def __init__(self, timeout_seconds: float, **kwargs):
        self.timeout_seconds = timeout_seconds
        details = kwargs.pop("details", {})
        details["timeout_seconds"] = timeout_seconds
        message = kwargs.pop("message", None) or (
            f"QUOTE_TIMEOUT: Yampi não respondeu em {timeout_seconds:g}s"
        )
        super().__init__(message, details=details, **kwargs)
