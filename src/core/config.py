"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Session tokens - the secret is only required when a token is issued
    jwt_secret: str | None = Field(default=None, validation_alias="JWT_SECRET")
    jwt_algorithm: str = "HS256"
    session_ttl_days: int = 7
    cookie_secure: bool = Field(default=False, validation_alias="COOKIE_SECURE")
    bcrypt_rounds: int = Field(default=12, validation_alias="BCRYPT_ROUNDS")

    # Reader service (Jina Reader) - unauthenticated calls are allowed
    jina_api_key: str | None = Field(default=None, validation_alias="JINA_API_KEY")
    reader_base_url: str = Field(
        default="https://r.jina.ai", validation_alias="READER_BASE_URL",
    )

    # Language model (Groq chat completions) - required for summaries
    groq_api_key: str | None = Field(default=None, validation_alias="GROQ_API_KEY")
    groq_model: str = Field(default="llama-3.1-8b-instant", validation_alias="GROQ_MODEL")

    # Summary quota - intentionally tighter than the reader provider's own limit
    summary_max_requests_per_hour: int = Field(
        default=50, validation_alias="SUMMARY_MAX_REQUESTS_PER_HOUR",
    )
    summary_min_interval_seconds: float = Field(
        default=2.0, validation_alias="SUMMARY_MIN_INTERVAL_SECONDS",
    )

    # Redis - shared summary quota across processes
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=False, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=10, validation_alias="REDIS_POOL_SIZE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Field length limits
    max_title_length: int = Field(default=500, validation_alias="MAX_TITLE_LENGTH")

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def session_ttl_seconds(self) -> int:
        """Lifetime of a session token and its cookie."""
        return self.session_ttl_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
