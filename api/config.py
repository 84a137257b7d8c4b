"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

# Gate ceilings (overall score cap when a structural gate trips)
GATE_CEILING_CRAWLER_BLOCKED = 35
GATE_CEILING_MAJORITY_NOINDEX = 35
GATE_CEILING_RENDER_PARITY = 55
GATE_CEILING_STRUCTURED_DATA = 70

# GEO adjustment
GEO_MAX_BONUS = 10

API_VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Database
    database_url: PostgresDsn

    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Redis
    redis_url: RedisDsn
    redis_max_connections: int = 10

    # Citation providers
    brave_api_key: str | None = None
    brave_endpoint: str = "https://api.search.brave.com/res/v1/web/search"
    bing_api_key: str | None = None
    bing_endpoint: str = "https://api.bing.microsoft.com/v7.0/search"
    perplexity_api_key: str | None = None
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "sonar"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    summary_model: str = "gpt-4o"

    perplexity_enabled: bool = True
    brave_enabled: bool = True
    bing_enabled: bool = False
    search_summary_enabled: bool = True

    provider_timeout_seconds: float = 15.0  # Per-request timeout
    answer_timeout_seconds: float = 60.0  # Whole fallback chain
    bing_timeout_seconds: float = 1.2
    provider_max_attempts: int = 3
    provider_retry_base_seconds: float = 0.5

    # Citation rate limiting (token bucket per provider)
    rate_limit_capacity: int = 5
    rate_limit_refill_per_second: float = 5.0
    rate_limit_poll_seconds: float = 0.1

    # Citation cache
    citation_cache_enabled: bool = True
    citation_cache_ttl_seconds: int = 86400  # Cache TTL: 24 hours

    # Citation batches
    citation_batch_concurrency: int = 3
    citation_batch_delay_seconds: float = 0.2

    # Signal extraction
    extraction_max_html_bytes: int = 1_572_864  # 1.5 MB
    extraction_max_jsonld_blocks: int = 8
    extraction_max_jsonld_block_bytes: int = 200_000
    extraction_slow_ms: float = 100.0

    # Scoring
    fix_first_limit: int = 5

    # Visibility rollup
    rollup_lock_ttl_seconds: int = 900
    rollup_schedule_enabled: bool = True
    rollup_hour_utc: int = 1

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"

    @property
    def citations_enabled(self) -> bool:
        """Check if at least one citation provider has credentials."""
        return bool(self.brave_api_key or self.bing_api_key or self.perplexity_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    try:
        return Settings()  # type: ignore[call-arg]
    except Exception as e:
        if "validation" in type(e).__name__.lower() or "required" in str(e).lower():
            raise RuntimeError(
                "Missing required environment variables. Set DATABASE_URL and REDIS_URL."
            ) from e
        raise
