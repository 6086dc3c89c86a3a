from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_PROXY_URL = "http://localhost:3000"
DEFAULT_REQUEST_TIMEOUT = 30.0

_PROXY_URL_ENV = "API_BASE_URL"
_REQUEST_TIMEOUT_ENV = "CLI_REQUEST_TIMEOUT"
_DEVICE_ID_ENV = "CLI_DEVICE_ID"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_PROXY_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    device_id: Optional[str] = None


def _env_timeout() -> float:
    raw = (os.getenv(_REQUEST_TIMEOUT_ENV) or "").strip()
    try:
        parsed = float(raw)
    except ValueError:
        return DEFAULT_REQUEST_TIMEOUT
    return parsed if parsed > 0 else DEFAULT_REQUEST_TIMEOUT


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    """Merge command-line overrides over environment defaults."""
    url = base_url or os.getenv(_PROXY_URL_ENV) or DEFAULT_PROXY_URL
    device_id = (os.getenv(_DEVICE_ID_ENV) or "").strip() or None
    return CLIConfig(
        base_url=url.rstrip("/"),
        timeout=timeout if timeout is not None else _env_timeout(),
        device_id=device_id,
    )
