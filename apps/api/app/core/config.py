"""
Process configuration (env-driven).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db
- LOCAL_SERVICE_URL: http://localhost:3001/mcp
"""
from __future__ import annotations

import os

DEFAULT_DATABASE_URL = "sqlite:///./data/app.db"
DEFAULT_LOCAL_SERVICE_URL = "http://localhost:3001/mcp"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        v = float(raw)
    except ValueError:
        return default
    return v if v > 0 else default


def _bool_env(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() not in ("0", "false", "no", "off", "")


def get_app_version() -> str:
    return os.getenv("APP_VERSION", "0.1.0")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def db_auto_create() -> bool:
    return _bool_env("DB_AUTO_CREATE", True)


def get_master_secret() -> str:
    # read once at startup; crypto code never touches the environment
    return (os.getenv("AUTH_SECRET") or "").strip()


def get_local_service_url() -> str:
    return (os.getenv("LOCAL_SERVICE_URL") or "").strip() or DEFAULT_LOCAL_SERVICE_URL


def probe_timeout_s() -> float:
    return _float_env("AI_PROBE_TIMEOUT_S", 8.0)


def models_timeout_s() -> float:
    return _float_env("AI_MODELS_TIMEOUT_S", 8.0)


def local_service_timeout_s() -> float:
    return _float_env("LOCAL_SERVICE_TIMEOUT_S", 2.5)
