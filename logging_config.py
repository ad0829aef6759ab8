from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

_CONTEXT_KEYS = (
    "sensor_id",
    "reading_id",
    "report_id",
    "user_id",
    "alert_level",
    "event",
    "subscriber_count",
    "reason",
    "path",
)

# Libraries that log every request or connection at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends ``key=value`` pairs for known ``extra`` attributes."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or _CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={value}"
            for key, value in (
                (key, getattr(record, key, None)) for key in self._context_keys
            )
            if value is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def _build_config(log_level: str | int) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "style": "%",
                "context_keys": list(_CONTEXT_KEYS),
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "contextual",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _NOISY_LOGGERS},
        "root": {"handlers": ["default"], "level": log_level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Configure application-wide logging once per process."""
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level
    dictConfig(_build_config(log_level))
    _configured = True
