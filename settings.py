from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_URL_ENVS = ("STORE_BASE_URL", "FIREBASE_DATABASE_URL")
_API_KEY_ENVS = ("STORE_API_KEY", "FIREBASE_API_KEY")
_AUTH_URL_ENV = "STORE_AUTH_URL"
_REFRESH_ENV = "CREDENTIAL_REFRESH_SECONDS"
_STORE_TIMEOUT_ENV = "STORE_TIMEOUT_SECONDS"
_INGEST_TIMEOUT_ENV = "INGEST_TIMEOUT_SECONDS"
_DEVICE_ID_ENV = "DEFAULT_DEVICE_ID"
_HOST_ENV = "HOST"
_PORT_ENV = "PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_CORS_ORIGINS_ENV = "CORS_ALLOW_ORIGINS"

DEFAULT_ISSUANCE_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signUp"


class ConfigurationError(RuntimeError):
    """Required startup configuration is missing or unusable."""


@dataclass(frozen=True)
class Settings:
    store_base_url: Optional[str]
    store_api_key: Optional[str]
    issuance_url: str
    credential_refresh_seconds: float
    store_timeout_seconds: float
    ingest_timeout_seconds: float
    default_device_id: str
    host: str
    port: int
    log_level: str
    cors_origins: tuple[str, ...] = ("*",)

    def require_store_url(self) -> str:
        if not self.store_base_url:
            raise ConfigurationError(
                "STORE_BASE_URL is not set; the proxy cannot start without a store endpoint."
            )
        return self.store_base_url


def _first_env(names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_origins(default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(_CORS_ORIGINS_ENV)
    if value is None:
        return default
    origins = tuple(part.strip() for part in value.split(",") if part.strip())
    return origins or default


@lru_cache
def get_settings() -> Settings:
    store_url = _first_env(_STORE_URL_ENVS)
    return Settings(
        store_base_url=store_url.rstrip("/") if store_url else None,
        store_api_key=_first_env(_API_KEY_ENVS),
        issuance_url=_read_str_env(_AUTH_URL_ENV, DEFAULT_ISSUANCE_URL),
        credential_refresh_seconds=_read_positive_float(_REFRESH_ENV, 50 * 60.0),
        store_timeout_seconds=_read_positive_float(_STORE_TIMEOUT_ENV, 10.0),
        ingest_timeout_seconds=_read_positive_float(_INGEST_TIMEOUT_ENV, 15.0),
        default_device_id=_read_str_env(_DEVICE_ID_ENV, "MXCHIP_001"),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_port(3000),
        log_level=_read_log_level("INFO"),
        cors_origins=_read_origins(("*",)),
    )
