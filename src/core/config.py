"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="tutorlink-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(
        default="",
        description="Supabase signing key JWK (JSON string) for ES256 token verification",
    )
    supabase_jwt_secret: str = Field(
        default="",
        description="Supabase legacy JWT secret for HS256 token verification",
    )

    # Session lifecycle
    session_max_duration_seconds: int = Field(
        default=3600, gt=0, description="Hard cap on the length of a tutoring session"
    )
    session_sweep_interval_seconds: int = Field(
        default=30, ge=0, description="Interval of the server-side cap sweep (0 disables it)"
    )
    require_verified_teacher_to_publish: bool = Field(
        default=False, description="Only verified teachers may advertise availability"
    )

    # Change notification relay
    relay_queue_size: int = Field(default=100, gt=0, description="Buffered events per subscriber")
    relay_heartbeat_seconds: int = Field(default=15, gt=0, description="Keep-alive interval for SSE feeds")

    # Datastore retries (read paths only)
    datastore_read_retries: int = Field(default=3, ge=1, description="Attempts for read queries")
    datastore_retry_max_wait_seconds: int = Field(default=4, ge=1, description="Backoff ceiling")

    # Rate limiting for contended writes (claim, publish)
    rate_limit_write_requests: int = Field(default=30, description="Max write requests per window per user")
    rate_limit_window_seconds: int = Field(default=60, description="Rate limit window in seconds")

    @model_validator(mode="after")
    def check_sweep_interval(self) -> "Settings":
        """Clamp the sweep interval to the session cap."""
        if self.session_sweep_interval_seconds > self.session_max_duration_seconds:
            self.session_sweep_interval_seconds = self.session_max_duration_seconds
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
