"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_refresh_secret_key: str = "dev-jwt-refresh-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "taskhub-api"
    jwt_access_token_expire_minutes: int = 15
    jwt_refresh_token_expire_days: int = 7

    password_hash_iterations: int = 100_000

    # When False, a login against a deactivated account fails with the same
    # INVALID_CREDENTIALS code as a wrong password.
    login_reveal_inactive: bool = False

    # Per client IP, shared by /auth/register and /auth/login
    rate_limit_enabled: bool = True
    auth_rate_limit: str = "5 per 15 minutes"

    # ==========================================================================
    # Storage
    # ==========================================================================

    # "file" (JSON files under storage_path) or "memory" (lost on shutdown)
    storage_backend: str = "file"
    storage_path: str = "./data"

    # ==========================================================================
    # Queries
    # ==========================================================================

    default_page_size: int = 10
    max_page_size: int = 100
    due_soon_days: int = 7

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
