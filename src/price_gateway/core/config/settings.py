"""Application configuration using Pydantic Settings with YAML support.

This module provides centralized configuration management with:
- YAML-based configuration files organized by domain
- Environment-specific overrides (local, test, development, production)
- Environment variable loading for secrets
- Type validation and coercion
- Caching for performance
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_source import MultiYamlConfigSettingsSource


if TYPE_CHECKING:
    from pydantic_settings import PydanticBaseSettingsSource


# Hard bounds for the batch worker pool, whatever the environment asks for
MIN_BATCH_CONCURRENCY = 1
MAX_BATCH_CONCURRENCY = 5


# =============================================================================
# Nested Configuration Models (from YAML)
# =============================================================================


class AppSettings(BaseModel):
    """Application identity settings."""

    name: str = "Grocery Price Gateway"
    version: str = "0.1.0"
    debug: bool = False


class ServerSettings(BaseModel):
    """Server configuration settings."""

    host: str = "127.0.0.1"
    port: int = 3001


class ApiSettings(BaseModel):
    """API configuration settings."""

    v1_prefix: str = "/api/kroger"
    cors_origins: list[str] = []


class KrogerSettings(BaseModel):
    """Upstream grocery API settings."""

    base_url: str = "https://api.kroger.com/v1"
    scope: str = "product.compact"
    timeout: float = 10.0
    requests_per_second: float = 10.0
    debug: bool = False  # exposes /env-check


class TokenSettings(BaseModel):
    """Bearer token lifecycle settings."""

    safety_margin_seconds: int = 300
    max_attempts: int = 5
    backoff_base_ms: int = 400
    backoff_jitter_ms: int = 400


class BatchSettings(BaseModel):
    """Batch price lookup settings."""

    request_timeout_ms: int = 2500
    deadline_ms: int = 6500
    concurrency: int = 3
    chunk_size: int = 10

    @field_validator("concurrency", mode="before")
    @classmethod
    def clamp_concurrency(cls, value: object) -> int:
        """Clamp worker concurrency into the supported range."""
        try:
            number = int(value)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return 3
        return max(MIN_BATCH_CONCURRENCY, min(MAX_BATCH_CONCURRENCY, number))

    @property
    def request_timeout(self) -> float:
        """Per-request timeout in seconds."""
        return self.request_timeout_ms / 1000

    @property
    def deadline(self) -> float:
        """Global batch deadline in seconds."""
        return self.deadline_ms / 1000


class PriceCacheSettings(BaseModel):
    """Price cache settings."""

    enabled: bool = True
    ttl_seconds: int = 15 * 60
    max_entries: int = 500
    snapshot_key: str = "kroger_price_cache_v1"


class PricingSettings(BaseModel):
    """Pricing aggregation settings."""

    token: TokenSettings = TokenSettings()
    batch: BatchSettings = BatchSettings()
    cache: PriceCacheSettings = PriceCacheSettings()


class RedisSettings(BaseModel):
    """Redis configuration settings."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    user: str | None = None  # Redis ACL username (Redis 6.0+)
    cache_db: int = 0


class RateLimitingSettings(BaseModel):
    """Inbound rate limiting configuration."""

    default: str = "120/minute"
    storage_uri: str = "memory://"


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "json"


class MetricsSettings(BaseModel):
    """Metrics configuration settings."""

    enabled: bool = True


class ObservabilitySettings(BaseModel):
    """Observability configuration settings."""

    metrics: MetricsSettings = MetricsSettings()


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Application settings with YAML + environment variable support.

    Configuration is loaded from multiple sources with the following priority
    (highest to lowest):
    1. Environment variables
    2. .env file (secrets only)
    3. Environment-specific YAML files (config/environments/{APP_ENV}/)
    4. Base YAML files (config/base/)
    5. Default values in code

    Environment variables can override any setting using the nested delimiter '__'.
    For example: PRICING__BATCH__DEADLINE_MS=4000 overrides pricing.batch.deadline_ms.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    APP_ENV: str = "development"

    app: AppSettings = AppSettings()
    server: ServerSettings = ServerSettings()
    api: ApiSettings = ApiSettings()
    kroger: KrogerSettings = KrogerSettings()
    pricing: PricingSettings = PricingSettings()
    redis: RedisSettings = RedisSettings()
    rate_limiting: RateLimitingSettings = RateLimitingSettings()
    logging: LoggingSettings = LoggingSettings()
    observability: ObservabilitySettings = ObservabilitySettings()

    # =========================================================================
    # Secrets (from .env only - never in YAML)
    # =========================================================================
    KROGER_CLIENT_ID: str = ""
    KROGER_CLIENT_SECRET: str = ""
    REDIS_PASSWORD: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings loading order.

        Priority (highest to lowest):
        1. init_settings - Values passed to Settings()
        2. env_settings - Environment variables
        3. dotenv_settings - .env file (secrets)
        4. yaml_settings - YAML files (base + environment)
        5. file_secret_settings - Docker secrets
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            MultiYamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # =========================================================================
    # Computed Fields
    # =========================================================================

    @property
    def has_kroger_credentials(self) -> bool:
        """Whether both halves of the client credentials are present."""
        return bool(self.KROGER_CLIENT_ID and self.KROGER_CLIENT_SECRET)

    @property
    def redis_cache_url(self) -> str:
        """Build Redis cache connection URL with optional authentication.

        URL format: redis://[user:password@]host:port/db
        """
        auth_part = ""
        if self.redis.user and self.REDIS_PASSWORD:
            auth_part = f"{self.redis.user}:{self.REDIS_PASSWORD}@"
        elif self.REDIS_PASSWORD:
            auth_part = f":{self.REDIS_PASSWORD}@"
        elif self.redis.user:
            auth_part = f"{self.redis.user}@"

        return (
            f"redis://{auth_part}{self.redis.host}:{self.redis.port}"
            f"/{self.redis.cache_db}"
        )

    # =========================================================================
    # Environment Helpers
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.APP_ENV == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in test environment."""
        return self.APP_ENV == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Using lru_cache ensures settings are only loaded once,
    improving performance and consistency.
    """
    return Settings()


# Global settings instance for convenience
settings = get_settings()
