from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    aggregate_max_attempts: int = 3
    worker_poll_interval: float = 1.0
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
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    attempts_raw = _getenv("AGGREGATE_MAX_ATTEMPTS", "3")
    poll_raw = _getenv("WORKER_POLL_INTERVAL", "1.0")

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

    try:
        aggregate_max_attempts = int(attempts_raw)
    except ValueError:
        raise ValueError(
            f"AGGREGATE_MAX_ATTEMPTS must be an integer (got {attempts_raw!r})"
        ) from None
    if aggregate_max_attempts < 1:
        raise ValueError("AGGREGATE_MAX_ATTEMPTS must be >= 1")

    try:
        worker_poll_interval = float(poll_raw)
    except ValueError:
        raise ValueError(
            f"WORKER_POLL_INTERVAL must be a number (got {poll_raw!r})"
        ) from None

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    # Env files often carry the PEM on one line with literal \n escapes.
    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if jwt_public_key is not None and not jwt_public_key.startswith(
        "-----BEGIN PUBLIC KEY-----"
    ):
        raise ValueError("JWT_PUBLIC_KEY must be a PEM-encoded public key")
    if jwt_public_key is None and app_env_raw == "prod":
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        aggregate_max_attempts=aggregate_max_attempts,
        worker_poll_interval=worker_poll_interval,
        jwt_public_key=jwt_public_key,
    )


SETTINGS = load_settings()
