"""
Survey Report Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
    validate_config(app.config)
"""

import os

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'survey_reports_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _database_url(default=None):
    # Hosted Postgres hands out postgres://, SQLAlchemy 2.0 wants postgresql://
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


class Config:
    """Base configuration shared across all environments."""

    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Reports
    REPORT_MIN_RESPONSES = _env_int("REPORT_MIN_RESPONSES", 5)
    REPORT_STALE_AFTER_SECONDS = _env_int("REPORT_STALE_AFTER_SECONDS", 300)
    REPORT_ESTIMATED_SECONDS = _env_int("REPORT_ESTIMATED_SECONDS", 5)
    REPORT_GENERATE_RATE_LIMIT = os.getenv("REPORT_GENERATE_RATE_LIMIT", "30/minute")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    # SQLite in-memory gets a StaticPool from Flask-SQLAlchemy; no pool options
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production


def validate_config(cfg) -> None:
    """Reject settings the report engine cannot work with.

    Raises:
        RuntimeError: on a missing database URL or a non-positive report setting.
    """
    if not cfg.get("SQLALCHEMY_DATABASE_URI"):
        raise RuntimeError("DATABASE_URL environment variable is required")
    if cfg.get("REPORT_MIN_RESPONSES", 0) < 1:
        raise RuntimeError("REPORT_MIN_RESPONSES must be at least 1")
    for key in ("REPORT_STALE_AFTER_SECONDS", "REPORT_ESTIMATED_SECONDS"):
        if cfg.get(key, 0) <= 0:
            raise RuntimeError(f"{key} must be a positive number of seconds")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
