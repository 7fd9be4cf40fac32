from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    app_env: str
    log_level: str
    sentry_dsn: str | None
    rate_limit: str
    guest_rate_limit: str
    rate_limit_enabled: bool
    cors_allowed_origins: tuple[str, ...]
    main_service_url: str
    main_service_timeout_s: float
    quiz_db_path: str
    quiz_recent_scan_limit: int
    quiz_allow_owner_mismatch: bool
    default_age_range: str
    llm_timeout_s: float
    youtube_api_key: str | None
    youtube_timeout_s: float

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


settings = Settings(
    app_env=(_get_env("APP_ENV", "development") or "development").strip().lower(),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    rate_limit=_get_env("RATE_LIMIT", "60/minute") or "60/minute",
    guest_rate_limit=_get_env("GUEST_RATE_LIMIT", "20/minute") or "20/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:5500",
            "http://localhost:3001",
            "https://skillseed-parent.vercel.app",
        ],
    ),
    main_service_url=(_get_env("MAIN_SERVICE_URL", "http://localhost:3000") or "http://localhost:3000").rstrip("/"),
    main_service_timeout_s=_get_env_float("MAIN_SERVICE_TIMEOUT_S", 10.0),
    quiz_db_path=_get_env("QUIZ_DB_PATH", "data/skillseed.db") or "data/skillseed.db",
    quiz_recent_scan_limit=_get_env_int("QUIZ_RECENT_SCAN_LIMIT", 100),
    quiz_allow_owner_mismatch=_get_env_bool("QUIZ_ALLOW_OWNER_MISMATCH", True),
    default_age_range=_get_env("DEFAULT_AGE_RANGE", "9-12") or "9-12",
    llm_timeout_s=_get_env_float("LLM_TIMEOUT_S", 30.0),
    youtube_api_key=_get_env("YOUTUBE_API_KEY"),
    youtube_timeout_s=_get_env_float("YOUTUBE_TIMEOUT_S", 10.0),
)

if settings.quiz_recent_scan_limit < 1:
    raise RuntimeError("QUIZ_RECENT_SCAN_LIMIT must be a positive integer.")
