from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .utils import FALSE_VALUES, TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ENABLE_BASIC_AUTH: 'true' to protect webhooks/executables with HTTP Basic Auth (default: false)
    - BASIC_AUTH_USERNAME / BASIC_AUTH_PASSWORD: credentials used when ENABLE_BASIC_AUTH=true
    - ENABLE_SCHEDULER: 'false' to disable the periodic cleanup sweep (default: true)
    - CLEANUP_INTERVAL_SECONDS: cadence of the scheduled cleanup (default: 10)
    - AI_PROVIDER: 'mock' (default) or 'openai'
    - AI_MODEL, AI_API_KEY, AI_BASE_URL, AI_TIMEOUT_SECONDS: provider connection settings
    - AI_MAX_ROUNDS: max tool-calling rounds per assistant query (default: 4)
    - LOG_LEVEL: root log level (default: INFO)
    """

    persistence_backend: str = "memory"
    sqlite_db_path: str = "./data/todos.db"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    enable_basic_auth: bool = False
    basic_auth_username: Optional[str] = None
    basic_auth_password: Optional[str] = None
    enable_scheduler: bool = True
    cleanup_interval_seconds: float = 10.0
    ai_provider: str = "mock"
    ai_model: str = "gpt-4o-mini"
    ai_api_key: Optional[str] = None
    ai_base_url: str = "https://api.openai.com/v1"
    ai_timeout_seconds: float = 30.0
    ai_max_rounds: int = 4
    log_level: str = "INFO"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in TRUE_VALUES:
        return True
    if v in FALSE_VALUES:
        return False
    return default


def _parse_positive_float(value: str, default: float) -> float:
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_positive_int(value: str, default: int) -> int:
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = "memory"

    enable_basic_auth = _parse_bool(_get_env("ENABLE_BASIC_AUTH", "false"), False)

    ai_provider = _get_env("AI_PROVIDER", "mock").strip().lower()
    if ai_provider not in {"mock", "openai"}:
        ai_provider = "mock"

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/todos.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        enable_basic_auth=enable_basic_auth,
        basic_auth_username=os.getenv("BASIC_AUTH_USERNAME") if enable_basic_auth else None,
        basic_auth_password=os.getenv("BASIC_AUTH_PASSWORD") if enable_basic_auth else None,
        enable_scheduler=_parse_bool(_get_env("ENABLE_SCHEDULER", "true"), True),
        cleanup_interval_seconds=_parse_positive_float(_get_env("CLEANUP_INTERVAL_SECONDS", "10"), 10.0),
        ai_provider=ai_provider,
        ai_model=_get_env("AI_MODEL", "gpt-4o-mini").strip(),
        ai_api_key=os.getenv("AI_API_KEY"),
        ai_base_url=_get_env("AI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/"),
        ai_timeout_seconds=_parse_positive_float(_get_env("AI_TIMEOUT_SECONDS", "30"), 30.0),
        ai_max_rounds=_parse_positive_int(_get_env("AI_MAX_ROUNDS", "4"), 4),
        log_level=log_level,
    )
