"""
Centralized configuration for the template lifecycle engine.

- Plain dataclass settings, loaded from OS env (plus a .env file when present).
- Strong typing & validation in __post_init__.
- Immutable singleton via functools.lru_cache.
- Secrets never logged (masked).
"""

from __future__ import annotations

import functools
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, cast
from urllib.parse import urlparse

from dotenv import load_dotenv

from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------
def _mask_secret(value: Optional[str]) -> str:
    if not value:
        return "<unset>"
    if len(value) <= 8:
        return "***"
    return value[:2] + "…" + value[-2:]


def _get_env_str(env: dict[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    v = env.get(key)
    if v is None or v.strip() == "":
        return default
    return v.strip()


def _get_env_bool(env: dict[str, str], key: str, default: bool = False) -> bool:
    v = env.get(key)
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_env_int(env: dict[str, str], key: str, default: int) -> int:
    v = env.get(key)
    if v is None or v.strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        raise ValueError(f"Env var {key} must be an integer")


def _get_env_float(env: dict[str, str], key: str, default: float) -> float:
    v = env.get(key)
    if v is None or v.strip() == "":
        return default
    try:
        return float(v)
    except ValueError:
        raise ValueError(f"Env var {key} must be a number")


def _validate_choice(value: str, *, choices: tuple[str, ...], key: str) -> str:
    if value not in choices:
        raise ValueError(f"{key} must be one of {choices}, got {value!r}")
    return value


def _validate_url(value: Optional[str], *, key: str, allowed_schemes: tuple[str, ...]) -> Optional[str]:
    if value in (None, ""):
        return None
    parsed = urlparse(value)
    if parsed.scheme not in allowed_schemes or not parsed.netloc:
        raise ValueError(f"{key} must be a valid URL with scheme in {allowed_schemes}")
    return value


def _require_positive(value: float, *, key: str) -> None:
    if value <= 0:
        raise ValueError(f"{key} must be > 0")


# ------------------------------------------------------------------------------
# Settings dataclass (immutable)
# ------------------------------------------------------------------------------
EnvName = Literal["local", "dev", "staging", "prod"]


@dataclass(frozen=True)
class Settings:
    # Environment
    environment: EnvName = "local"

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    # Retry defaults (milliseconds)
    retry_max_attempts: int = 3
    retry_initial_delay_ms: int = 1000
    retry_max_delay_ms: int = 10000
    retry_backoff_multiplier: float = 2.0

    # Circuit breaker defaults
    circuit_failure_threshold: int = 5
    circuit_reset_timeout_seconds: float = 60.0

    # Provider
    provider_api_base_url: str = "https://graph.facebook.com/v19.0"
    provider_account_id: Optional[str] = None
    provider_access_token: Optional[str] = None
    provider_timeout_seconds: float = 30.0

    # Reconciliation worker
    status_check_interval_minutes: int = 30
    status_check_batch_size: int = 50

    def __post_init__(self) -> None:
        _validate_choice(self.environment, choices=("local", "dev", "staging", "prod"), key="ENVIRONMENT")
        _validate_url(self.provider_api_base_url, key="PROVIDER_API_BASE_URL", allowed_schemes=("http", "https"))

        if not re.fullmatch(r"(?i)DEBUG|INFO|WARNING|ERROR|CRITICAL", self.log_level.strip()):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")

        _require_positive(self.retry_max_attempts, key="RETRY_MAX_ATTEMPTS")
        _require_positive(self.retry_initial_delay_ms, key="RETRY_INITIAL_DELAY_MS")
        if self.retry_max_delay_ms < self.retry_initial_delay_ms:
            raise ValueError("RETRY_MAX_DELAY_MS must be >= RETRY_INITIAL_DELAY_MS")
        if self.retry_backoff_multiplier < 1:
            raise ValueError("RETRY_BACKOFF_MULTIPLIER must be >= 1")

        _require_positive(self.circuit_failure_threshold, key="CIRCUIT_FAILURE_THRESHOLD")
        _require_positive(self.circuit_reset_timeout_seconds, key="CIRCUIT_RESET_TIMEOUT_SECONDS")
        _require_positive(self.provider_timeout_seconds, key="PROVIDER_TIMEOUT_SECONDS")
        _require_positive(self.status_check_interval_minutes, key="STATUS_CHECK_INTERVAL_MINUTES")
        _require_positive(self.status_check_batch_size, key="STATUS_CHECK_BATCH_SIZE")

    @property
    def is_prod(self) -> bool:
        return self.environment == "prod"

    @classmethod
    def from_env(cls, env: dict[str, str]) -> "Settings":
        return cls(
            environment=cast(EnvName, _get_env_str(env, "ENVIRONMENT", "local")),
            log_level=_get_env_str(env, "LOG_LEVEL", "INFO") or "INFO",
            log_json=_get_env_bool(env, "LOG_JSON", True),
            retry_max_attempts=_get_env_int(env, "RETRY_MAX_ATTEMPTS", 3),
            retry_initial_delay_ms=_get_env_int(env, "RETRY_INITIAL_DELAY_MS", 1000),
            retry_max_delay_ms=_get_env_int(env, "RETRY_MAX_DELAY_MS", 10000),
            retry_backoff_multiplier=_get_env_float(env, "RETRY_BACKOFF_MULTIPLIER", 2.0),
            circuit_failure_threshold=_get_env_int(env, "CIRCUIT_FAILURE_THRESHOLD", 5),
            circuit_reset_timeout_seconds=_get_env_float(env, "CIRCUIT_RESET_TIMEOUT_SECONDS", 60.0),
            provider_api_base_url=_get_env_str(env, "PROVIDER_API_BASE_URL", "https://graph.facebook.com/v19.0")
            or "https://graph.facebook.com/v19.0",
            provider_account_id=_get_env_str(env, "PROVIDER_ACCOUNT_ID"),
            provider_access_token=_get_env_str(env, "PROVIDER_ACCESS_TOKEN"),
            provider_timeout_seconds=_get_env_float(env, "PROVIDER_TIMEOUT_SECONDS", 30.0),
            status_check_interval_minutes=_get_env_int(env, "STATUS_CHECK_INTERVAL_MINUTES", 30),
            status_check_batch_size=_get_env_int(env, "STATUS_CHECK_BATCH_SIZE", 50),
        )

    # Safe dict (for debug prints without secrets)
    def safe_dict(self) -> dict:
        return {
            "environment": self.environment,
            "log_level": self.log_level,
            "log_json": self.log_json,
            "retry_max_attempts": self.retry_max_attempts,
            "retry_initial_delay_ms": self.retry_initial_delay_ms,
            "retry_max_delay_ms": self.retry_max_delay_ms,
            "retry_backoff_multiplier": self.retry_backoff_multiplier,
            "circuit_failure_threshold": self.circuit_failure_threshold,
            "circuit_reset_timeout_seconds": self.circuit_reset_timeout_seconds,
            "provider_api_base_url": self.provider_api_base_url,
            "provider_account_id": self.provider_account_id or "<unset>",
            "provider_access_token": _mask_secret(self.provider_access_token),
            "provider_timeout_seconds": self.provider_timeout_seconds,
            "status_check_interval_minutes": self.status_check_interval_minutes,
            "status_check_batch_size": self.status_check_batch_size,
        }


# ------------------------------------------------------------------------------
# Loader (singleton)
# ------------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    # .env at repo root (../../.env relative to src/shared/)
    env_file = Path(__file__).resolve().parent.parent.parent / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=str(env_file), override=False)

    settings = Settings.from_env(dict(os.environ))
    logger.info("settings_loaded", settings=settings.safe_dict())
    return settings
