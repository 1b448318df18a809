from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Single point of env access; callers cast and validate
    return os.environ.get(name, default).strip()


def _getenv_float(name: str, default: str) -> float:
    raw = _getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # Registry ("Orbit") connection. Environment fallback for the
    # file-stored settings managed by app/services/orbit_settings.py.
    orbit_base_url: str | None
    orbit_lob_id: str | None
    orbit_api_key: str | None
    orbit_encryption_key: str
    orbit_settings_path: str
    orbit_timeout_seconds: float
    explorer_timeout_seconds: float
    # PEM public key of the login service that signs session cookies.
    session_public_key: str | None

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
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    encryption_key = _getenv("ORBIT_ENCRYPTION_KEY", "")
    if not encryption_key:
        if app_env_raw == "prod":
            raise ValueError("ORBIT_ENCRYPTION_KEY is required when APP_ENV=prod")
        encryption_key = "catalogue-dev-encryption-key"

    # PEM blocks arrive with escaped newlines when set as a single env line.
    session_public_key = _getenv("SESSION_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if session_public_key is None and app_env_raw == "prod":
        raise ValueError("SESSION_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        orbit_base_url=_getenv("ORBIT_BASE_URL", "").rstrip("/") or None,
        orbit_lob_id=_getenv("ORBIT_LOB_ID", "") or None,
        orbit_api_key=_getenv("ORBIT_API_KEY", "") or None,
        orbit_encryption_key=encryption_key,
        orbit_settings_path=_getenv(
            "ORBIT_SETTINGS_PATH", os.path.join("assets", "orbit-settings.json")
        ),
        orbit_timeout_seconds=_getenv_float("ORBIT_TIMEOUT_SECONDS", "30"),
        explorer_timeout_seconds=_getenv_float("EXPLORER_TIMEOUT_SECONDS", "15"),
        session_public_key=session_public_key,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
