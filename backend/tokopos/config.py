# backend/tokopos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "y"):
        return True
    if value in ("false", "0", "no", "n"):
        return False
    return default


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tokopos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Document numbering
    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "Asia/Jakarta")
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "TOKOAL")

    # Pull paging
    SYNC_PULL_DEFAULT_LIMIT = _env_int("SYNC_PULL_DEFAULT_LIMIT", 100, minimum=1)
    SYNC_PULL_MAX_LIMIT = _env_int("SYNC_PULL_MAX_LIMIT", 1000, minimum=1)

    # Transient write failures (deadlocks, lock timeouts)
    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3, minimum=1)
    DB_RETRY_BACKOFF_SEC = 0.1

    # Repack runs at this location unless the request names another
    REPACK_LOCATION_CODE = os.environ.get("REPACK_LOCATION_CODE", "GUDANG")

    # Tombstones
    TOMBSTONE_USE_SERVER_TIME = _env_bool("TOMBSTONE_USE_SERVER_TIME", True)
    TOMBSTONE_MAX_FUTURE_SKEW_SEC = _env_int("TOMBSTONE_MAX_FUTURE_SKEW_SEC", 300, minimum=0)
    TOMBSTONE_RETENTION_ENABLED = _env_bool("TOMBSTONE_RETENTION_ENABLED", False)
    TOMBSTONE_RETENTION_DAYS = _env_int("TOMBSTONE_RETENTION_DAYS", 90, minimum=0)
    TOMBSTONE_STALE_CLIENT_DAYS = _env_int("TOMBSTONE_STALE_CLIENT_DAYS", 30, minimum=0)
    TOMBSTONE_RETENTION_SAFETY_SEC = _env_int("TOMBSTONE_RETENTION_SAFETY_SEC", 3600, minimum=0)
    TOMBSTONE_RETENTION_INTERVAL_SEC = _env_int("TOMBSTONE_RETENTION_INTERVAL_SEC", 86400, minimum=10)

    # Audit
    AUDIT_REDACT_KEYS = os.environ.get("AUDIT_REDACT_KEYS", "password,pin,card,phone,email")

    # Bearer sessions
    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 12, minimum=1)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2, minimum=1)
