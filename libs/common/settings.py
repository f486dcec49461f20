"""Application settings for the coaching back office API."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``COACHING_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COACHING_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Core application settings
    app_env: Literal["development", "test", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # CORS - use string to avoid JSON parsing issues
    cors_origins_str: str = Field(default="http://localhost:3000,https://localhost:3000", alias="cors_origins")

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from string."""
        if not self.cors_origins_str.strip():
            return ["http://localhost:3000", "https://localhost:3000"]
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Firebase / Firestore
    firebase_admin_sdk_json: str | None = None
    firebase_admin_sdk_path: str | None = None
    firebase_project_id: str | None = None
    firestore_database: str = "(default)"

    # Generative chat bridge
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Subscription expiry sweep
    expiry_sweep_enabled: bool = True
    expiry_sweep_hour: int = 0

    # Chat
    messages_default_limit: int = Field(default=50, ge=1, le=500)

    @field_validator("expiry_sweep_hour")
    @classmethod
    def validate_sweep_hour(cls, v: int) -> int:
        """Ensure the daily sweep hour is a valid UTC hour."""
        if not 0 <= v <= 23:
            raise ValueError("Expiry sweep hour must be between 0 and 23")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
