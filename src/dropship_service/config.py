"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "dropship-service"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    slow_request_threshold_ms: float = 1000.0

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "dropship"
    postgres_password: str = ""
    postgres_db: str = "dropship"
    database_url_override: str = ""

    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Async connection URL; the override wins when set (e.g. local SQLite)."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Synchronous URL for Alembic, derived from the async one."""
        return self.database_url.replace("+asyncpg", "").replace("+aiosqlite", "")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    cache_namespace: str = "dropship"

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # CJ Dropshipping
    # -------------------------------------------------------------------------
    cj_api_base_url: str = "https://developers.cjdropshipping.com/api2.0/v1"
    cj_email: str = ""
    cj_api_key: str = ""
    cj_tier: Literal["free", "plus", "prime", "advanced"] = "free"
    cj_timeout_seconds: float = 30.0
    cj_max_retries: int = Field(3, ge=0)
    cj_backoff_base_seconds: float = 1.0
    cj_backoff_max_seconds: float = 60.0
    cj_enabled: bool = True
    cj_webhook_secret: str = ""
    cj_webhook_base_url: str = ""
    cj_supplier_name: str = "CJ Dropshipping"

    @property
    def cj_credentials_configured(self) -> bool:
        return bool(self.cj_email and self.cj_api_key)

    @property
    def cj_webhook_url(self) -> str | None:
        """Public callback URL registered with CJ, when a base URL is configured."""
        if not self.cj_webhook_base_url:
            return None
        return f"{self.cj_webhook_base_url.rstrip('/')}/api/v1/webhooks/cj"

    # -------------------------------------------------------------------------
    # Catalog Settings
    # -------------------------------------------------------------------------
    default_margin_percent: float = Field(30.0, ge=0)
    default_country_code: str = "US"
    search_cache_ttl_seconds: int = 300
    category_tree_cache_ttl_seconds: int = 86400

    # -------------------------------------------------------------------------
    # Sync Worker Settings
    # -------------------------------------------------------------------------
    sync_orders_interval_minutes: int = 30
    apply_mappings_interval_minutes: int = 60
    sync_inventory_interval_hours: int = 4


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
