import os
from datetime import timedelta


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_decimal_or_none(name: str):
    raw = os.getenv(name, "").strip()
    return raw or None


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///libtrack.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-super-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "12")))

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "noreply@libtrack.local")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")

    # Daily penalty job (UTC hour)
    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", "1")
    PENALTY_CHECK_HOUR = int(os.getenv("PENALTY_CHECK_HOUR", "9"))

    # Per-item fine cap; unset means no cap is applied.
    MAX_FINE_PER_ITEM = _env_decimal_or_none("MAX_FINE_PER_ITEM")

    # Echo raw exception text in 500 responses (development only)
    EXPOSE_ERRORS = _env_bool("EXPOSE_ERRORS")

    SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE", "threading")
    SOCKETIO_CORS_ORIGINS = os.getenv("SOCKETIO_CORS_ORIGINS", "*")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-1234"
    MAIL_SUPPRESS_SEND = True
    SCHEDULER_ENABLED = False
    MAX_FINE_PER_ITEM = None
    EXPOSE_ERRORS = False
    LOG_LEVEL = "DEBUG"
