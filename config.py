"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

BASE_DIR = Path(__file__).parent


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    DATABASE = os.environ.get("DATABASE", str(BASE_DIR / "medflix.db"))
    WTF_CSRF_ENABLED = True

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400

    # Upload limits (lecture audio for AI updates)
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024  # 25 MB

    # AI provider
    GENAI_PROVIDER = os.environ.get("GENAI_PROVIDER", "gemini")  # "gemini" or "openai"
    GENAI_MODEL = os.environ.get("GENAI_MODEL", "gemini-2.5-flash")
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Persisted client state (theme, last viewed)
    REDIS_URL = os.environ.get("REDIS_URL", "")
    PREFERENCES_PATH = os.environ.get("PREFERENCES_PATH", "")
    DEFAULT_THEME = os.environ.get("DEFAULT_THEME", "dark")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = (
        os.environ.get("RATELIMIT_STORAGE_URI", "") or os.environ.get("REDIS_URL", "") or "memory://"
    )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.GENAI_PROVIDER not in ("gemini", "openai"):
            errors.append("GENAI_PROVIDER must be 'gemini' or 'openai'.")

        if cls.GENAI_PROVIDER == "gemini" and not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set — AI features will be unavailable.")
        if cls.GENAI_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            warnings.warn("OPENAI_API_KEY is not set — AI features will be unavailable.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
