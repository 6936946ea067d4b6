"""
Project Portfolio Manager
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'portfolio_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random per-process keys for development; production MUST use stable env vars
_DEV_SECRET = secrets.token_hex(32)
_DEV_JWT_SECRET = secrets.token_hex(32)


def _normalise_db_url(raw: str) -> str:
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    return raw.replace("postgres://", "postgresql://", 1)


def _csv(raw: str) -> list[str]:
    return [part.strip().lower() for part in (raw or "").split(",") if part.strip()]


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # JWT session tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", _DEV_JWT_SECRET)
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "3600"))
    BCRYPT_ROUNDS = 12

    # Mutating /api/v1 routes require a valid session when enabled
    AUTH_REQUIRED = os.getenv("AUTH_REQUIRED", "false").lower() == "true"

    # Emails allowed to self-register with the ADMIN role (comma separated)
    ADMIN_EMAIL_WHITELIST = _csv(os.getenv("ADMIN_EMAIL_WHITELIST", ""))

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Rate limiter storage (memory:// for a single process)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Kanban column id -> task status. Order is the board's column order.
    KANBAN_COLUMNS = {
        "todo": "TODO",
        "in_progress": "IN_PROGRESS",
        "uat": "UAT",
        "done": "DONE",
        "blocked": "BLOCKED",
    }

    # Dashboard
    UPCOMING_DEADLINE_WINDOW_DAYS = int(os.getenv("UPCOMING_DEADLINE_WINDOW_DAYS", "30"))

    # Outbound API client (board_client)
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000/api/v1")
    API_CLIENT_TIMEOUT = float(os.getenv("API_CLIENT_TIMEOUT", "10"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    # Session enforcement is switched on per-test where needed
    AUTH_REQUIRED = False
    ADMIN_EMAIL_WHITELIST = ["admin@example.com"]
    RATELIMIT_ENABLED = False
    BCRYPT_ROUNDS = 4  # bcrypt minimum; keeps the suite fast


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    AUTH_REQUIRED = os.getenv("AUTH_REQUIRED", "true").lower() == "true"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if not os.getenv("JWT_SECRET_KEY"):
            raise RuntimeError("JWT_SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
