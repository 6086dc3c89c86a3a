from __future__ import annotations

import logging
import re
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

_CONTEXT_KEYS = (
    "device_id",
    "timestamp",
    "leg",
    "path",
    "store_status",
    "outcome",
    "auth_mode",
    "reason",
    "method",
    "status",
    "duration_ms",
    "client",
)

# Query parameters that carry store credentials or the issuance API key.
_SECRET_PARAM = re.compile(r"(?P<name>\b(?:auth|key|idToken)=)[^&\s\"']+")

_configured = False


def redact_secrets(text: str) -> str:
    """Mask credential-bearing query parameters in a log line."""
    return _SECRET_PARAM.sub(r"\g<name>***", text)


class ContextualFormatter(logging.Formatter):
    """Appends ``key=value`` pairs for known ``extra=`` fields and hides secrets."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _CONTEXT_KEYS)

    def _context(self, record: logging.LogRecord) -> str:
        pairs = []
        for key in self._extra_keys:
            value: Any = getattr(record, key, None)
            if value is not None:
                pairs.append(f"{key}={value}")
        return " ".join(pairs)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = self._context(record)
        if context:
            message = f"{message} | {context}"
        return redact_secrets(message)


def configure_logging(level: str | int | None = None) -> None:
    """Install the contextual formatter on the root logger once per process."""
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "extra_keys": list(_CONTEXT_KEYS),
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                }
            },
            # httpx logs full request URLs at INFO, including the auth parameter.
            "loggers": {
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
            "root": {"handlers": ["console"], "level": log_level},
        }
    )

    _configured = True
