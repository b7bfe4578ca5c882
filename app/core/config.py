"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- ENVIRONMENT defaults to production
- Yampi credentials have no defaults (startup is refused in production if missing)
- Outside production, missing credentials are logged as startup warnings
"""
import json
import logging
from typing import Annotated, List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)

# Storefront domains allowed to call the proxy from the browser
DEFAULT_CORS_ORIGIN_REGEX = r"https?://([a-z0-9-]+\.)*(sonhosdeninar\.com|myshopify\.com)$"

REQUIRED_YAMPI_SETTINGS = (
    "YAMPI_BASE_URL",
    "YAMPI_ALIAS",
    "YAMPI_USER_TOKEN",
    "YAMPI_SECRET_KEY",
)

RESOLUTION_MODES = ("per_item", "legacy")


class Settings(BaseSettings):
    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Yampi Shipping Proxy"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Yampi API - tenant alias and token pair are sent on every call
    YAMPI_BASE_URL: str = "https://api.yampi.com.br"
    YAMPI_ALIAS: str = ""
    YAMPI_USER_TOKEN: str = ""
    YAMPI_SECRET_KEY: str = ""
    YAMPI_TIMEOUT_SECONDS: float = 15.0

    # SKU code -> Yampi id cache
    SKU_CACHE_TTL_SECONDS: int = 600

    # per_item: every cart item resolves on its own
    # legacy: any numeric id in the cart suppresses the SKU code lookup
    SKU_RESOLUTION_MODE: str = "per_item"

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGIN_REGEX: str = DEFAULT_CORS_ORIGIN_REGEX
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = []

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_QUOTE: str = "60/minute"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v.strip():
                return []
            # Try JSON first
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Fallback to comma-separated
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("YAMPI_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("SKU_RESOLUTION_MODE")
    @classmethod
    def validate_resolution_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in RESOLUTION_MODES:
            raise ValueError(f"SKU_RESOLUTION_MODE must be one of {RESOLUTION_MODES}")
        return v

    def missing_yampi_settings(self) -> List[str]:
        """Names of the Yampi settings that are empty."""
        return [name for name in REQUIRED_YAMPI_SETTINGS if not getattr(self, name)]

    @model_validator(mode="after")
    def validate_production_config(self):
        """Refuse to start in production without Yampi credentials."""
        missing = self.missing_yampi_settings()

        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            for name in missing:
                errors.append(f"{name} is required in production")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIG VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )
        else:
            for name in missing:
                logger.warning(f"[ENV] Missing {name}; Yampi calls will fail")

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
