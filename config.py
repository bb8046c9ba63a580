"""
Application configuration: environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


def _database_url() -> str:
    """DATABASE_URL, else a PostgreSQL URL from the DB_* variables, else SQLite."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return url
    host = os.environ.get("DB_HOST", "")
    if host:
        user = quote_plus(os.environ.get("DB_USER", "postgres"))
        password = quote_plus(os.environ.get("DB_PASSWORD", ""))
        port = os.environ.get("DB_PORT", "5432")
        name = os.environ.get("DB_NAME", "edumanage")
        auth = f"{user}:{password}" if password else user
        return f"postgresql://{auth}@{host}:{port}/{name}"
    return str(BASE_DIR / "edumanage.db")


# Origins allowed in addition to FRONTEND_URL and *.netlify.app
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "https://edumanage-cm.netlify.app",
]


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    ENVIRONMENT = os.environ.get("FLASK_ENV", os.environ.get("NODE_ENV", "development"))
    APP_VERSION = "1.0.0"

    # Tokens
    JWT_SECRET = os.environ.get("JWT_SECRET", "") or SECRET_KEY
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", "24"))

    # Database: SQLite (default) or PostgreSQL
    DATABASE = _database_url()
    DB_POOL_MAX = int(os.environ.get("DB_POOL_MAX", "20"))
    DB_CONNECT_TIMEOUT = int(os.environ.get("DB_CONNECT_TIMEOUT", "2"))

    # Uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", str(BASE_DIR / "uploads"))
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # CORS
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "")
    CORS_ORIGINS = DEFAULT_CORS_ORIGINS

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Response compression
    COMPRESS_MIMETYPES = [
        "text/html", "text/css", "text/javascript",
        "application/json", "application/javascript",
    ]
    COMPRESS_MIN_SIZE = 500

    # Rate limiting (in-memory unless RATELIMIT_STORAGE_URI is set)
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "100 per 15 minutes")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "") or "memory://"
    RATELIMIT_HEADERS_ENABLED = True


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENVIRONMENT = "development"
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENVIRONMENT = "production"
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")
        if cls.JWT_SECRET in ("dev-key-change-in-production", ""):
            errors.append("JWT_SECRET must be set to a secure value in production.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    ENVIRONMENT = "testing"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
