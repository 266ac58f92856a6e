"""
Configuration classes for the app factory.

Every setting can be overridden from the environment; integer settings
that fail to parse abort start-up instead of silently falling back.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'branch_visits_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _db_url(raw: str) -> str:
    # Hosted Postgres URLs often use postgres://, SQLAlchemy 2.0 needs postgresql://
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_hex(32))
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    # db.create_all() at startup; set to 0 once migrations own the schema
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "1") != "0"

    # Identity is asserted by the upstream gateway in this header
    ACTOR_HEADER = os.getenv("ACTOR_HEADER", "X-User-Id")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    MAX_CONTENT_LENGTH = _env_int("MAX_CONTENT_LENGTH", 1024 * 1024)

    # Flask-Limiter: shared storage in production, per-process memory otherwise
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    RATELIMIT_WRITE = os.getenv("RATELIMIT_WRITE", "60/minute")
    RATELIMIT_READ = os.getenv("RATELIMIT_READ", "200/minute")
    RATELIMIT_EXPORT = os.getenv("RATELIMIT_EXPORT", "20/minute")

    SLOW_REQUEST_MS = _env_int("SLOW_REQUEST_MS", 1000)

    VISIT_FEEDBACK_MAX_WORDS = _env_int("VISIT_FEEDBACK_MAX_WORDS", 200)
    VISIT_FEEDBACK_MAX_CHARS = _env_int("VISIT_FEEDBACK_MAX_CHARS", 2000)
    TOP_PERFORMERS_LIMIT = _env_int("TOP_PERFORMERS_LIMIT", 5)


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _db_url(os.getenv("DATABASE_URL", "")) or _SQLITE_DEV


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    AUTO_CREATE_TABLES = False
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    ACTOR_HEADER = "X-User-Id"


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _db_url(os.getenv("DATABASE_URL", "")) or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if not self.CORS_ORIGINS:
            raise RuntimeError("CORS_ORIGINS must list the allowed front-end origins in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
