from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # A module with no lessons and no exam (or a course with no modules)
    # counts as complete unless this is set.
    completion_requires_content: bool = False
    notification_max_retries: int = 3
    notification_backoff_seconds: float = 0.5
    progress_cache_ttl: int = 300
    # PEM of the LMS auth service's ES256 key. Unset: dev/test key pair.
    jwt_public_key: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    retries_raw = _getenv("NOTIFICATION_MAX_RETRIES", "3")
    try:
        max_retries = int(retries_raw)
    except ValueError:
        raise ValueError(
            f"NOTIFICATION_MAX_RETRIES must be an integer (got {retries_raw!r})"
        ) from None
    if max_retries < 0:
        raise ValueError(
            f"NOTIFICATION_MAX_RETRIES must be >= 0 (got {max_retries})"
        )

    backoff_raw = _getenv("NOTIFICATION_BACKOFF_SECONDS", "0.5")
    try:
        backoff = float(backoff_raw)
    except ValueError:
        raise ValueError(
            f"NOTIFICATION_BACKOFF_SECONDS must be a number (got {backoff_raw!r})"
        ) from None

    ttl_raw = _getenv("PROGRESS_CACHE_TTL", "300")
    try:
        cache_ttl = int(ttl_raw)
    except ValueError:
        raise ValueError(
            f"PROGRESS_CACHE_TTL must be an integer (got {ttl_raw!r})"
        ) from None

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    # Single-line env values carry the PEM newlines as literal \n.
    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if app_env_raw == "prod" and jwt_public_key is None:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        completion_requires_content=_getbool("COMPLETION_REQUIRES_CONTENT", False),
        notification_max_retries=max_retries,
        notification_backoff_seconds=backoff,
        progress_cache_ttl=cache_ttl,
        jwt_public_key=jwt_public_key,
    )


SETTINGS = load_settings()
