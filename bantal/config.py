"""
BANTAL Back-Office
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name]())
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite paths for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'bantal_dev.db')}"
_SQLITE_DEV_BLOBS = f"sqlite:///{os.path.join(basedir, 'instance', 'bantal_blobs_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _pg(url):
    # Heroku-style postgres:// is rejected by SQLAlchemy 2.0
    return url.replace("postgres://", "postgresql://", 1) if url else url


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

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # SSO token verification
    #   SSO_JWKS_URL set   → RS256 verified against the provider's JWKS
    #   SSO_JWKS_URL unset → HS256 with JWT_SECRET_KEY (local / tests)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    SSO_JWKS_URL = os.getenv("SSO_JWKS_URL")
    SSO_AUDIENCE = os.getenv("SSO_AUDIENCE")
    SSO_ISSUER = os.getenv("SSO_ISSUER")
    SSO_JWKS_TIMEOUT = int(os.getenv("SSO_JWKS_TIMEOUT", "10"))
    AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "auth_session")

    # Uploads
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))  # 20 MB
    MAX_FINALIZE_ATTACHMENTS = 2

    # Recorded as uploaded_by when no creator identity is supplied
    SYSTEM_IDENTITY_ID = os.getenv("SYSTEM_IDENTITY_ID", "system")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _pg(os.getenv("DATABASE_URL", "")) or _SQLITE_DEV
    SQLALCHEMY_BINDS = {
        "blobs": _pg(os.getenv("BLOB_DATABASE_URL", "")) or _SQLITE_DEV_BLOBS,
    }
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_BINDS = {"blobs": _SQLITE_TEST}
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret"
    SSO_JWKS_URL = None
    # Auth disabled in test environment; auth tests enable it per-app
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _pg(os.getenv("DATABASE_URL", "")) or None
    SQLALCHEMY_BINDS = {
        "blobs": _pg(os.getenv("BLOB_DATABASE_URL", "")) or SQLALCHEMY_DATABASE_URI,
    }
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")

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
        if not (self.SSO_JWKS_URL or self.JWT_SECRET_KEY):
            raise RuntimeError("SSO_JWKS_URL or JWT_SECRET_KEY must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
