"""Tests for application settings."""

import os
import tempfile

import pytest
from pydantic import ValidationError

from libs.common.settings import Settings, get_settings


class TestSettings:
    """Test settings configuration."""

    def test_defaults(self, monkeypatch):
        """Test the defaults used when nothing is configured."""
        monkeypatch.delenv("COACHING_APP_ENV", raising=False)
        monkeypatch.delenv("COACHING_EXPIRY_SWEEP_ENABLED", raising=False)

        settings = Settings()

        assert settings.app_env == "development"
        assert settings.is_development is True
        assert settings.firestore_database == "(default)"
        assert settings.openai_api_key is None
        assert settings.expiry_sweep_enabled is True
        assert settings.expiry_sweep_hour == 0
        assert settings.messages_default_limit == 50

    def test_settings_from_env_file(self):
        """Test settings loaded from a dotenv file."""
        env_vars = {
            "COACHING_FIREBASE_PROJECT_ID": "coaching-prod",
            "COACHING_OPENAI_MODEL": "gpt-4.1-mini",
            "COACHING_EXPIRY_SWEEP_HOUR": "3",
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".env", delete=False) as f:
            for key, value in env_vars.items():
                f.write(f"{key}={value}\n")
            env_file = f.name

        try:
            settings = Settings(_env_file=env_file)
            assert settings.firebase_project_id == "coaching-prod"
            assert settings.openai_model == "gpt-4.1-mini"
            assert settings.expiry_sweep_hour == 3
        finally:
            os.unlink(env_file)

    def test_sweep_hour_must_be_a_utc_hour(self, monkeypatch):
        """Test that out-of-range sweep hours are rejected."""
        monkeypatch.setenv("COACHING_EXPIRY_SWEEP_HOUR", "24")

        with pytest.raises(ValidationError) as exc_info:
            Settings()
        assert "Expiry sweep hour must be between 0 and 23" in str(exc_info.value)

    def test_settings_cors_origins_parsing(self, monkeypatch):
        """Test CORS origins parsing from comma-separated string."""
        monkeypatch.setenv("COACHING_CORS_ORIGINS", "https://admin.example.com, https://coach.example.com,")

        settings = Settings()

        assert settings.cors_origins == ["https://admin.example.com", "https://coach.example.com"]

    def test_empty_cors_origins_fall_back_to_localhost(self, monkeypatch):
        monkeypatch.setenv("COACHING_CORS_ORIGINS", "  ")

        assert Settings().cors_origins == ["http://localhost:3000", "https://localhost:3000"]

    def test_production_flags(self, monkeypatch):
        monkeypatch.setenv("COACHING_APP_ENV", "production")

        settings = Settings()

        assert settings.is_production is True
        assert settings.is_development is False

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
