from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings read from FINANCE_* environment variables or a local .env file."""

    model_config = SettingsConfigDict(env_prefix="FINANCE_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./finance.db"
    jwt_secret: str = "change-me-this-secret-must-be-at-least-32-characters"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 24 * 60
    # For local development the SPA runs on a different port; restrict in production.
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    max_upload_bytes: int = 5 * 1024 * 1024
    seed_demo_data: bool = False


# PUBLIC_INTERFACE
@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
