from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_INTERVAL = 2.0

_BASE_URL_ENV = "API_BASE_URL"
_INTERVAL_ENV = "SIMULATOR_INTERVAL"
_TOKEN_ENV = "API_TOKEN"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    interval: float = DEFAULT_INTERVAL
    token: Optional[str] = None


def _read_float(value: Optional[str], default: float) -> float:
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


def load_config(
    base_url: Optional[str] = None,
    interval: Optional[float] = None,
    token: Optional[str] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if interval is None:
        interval = _read_float(os.getenv(_INTERVAL_ENV), DEFAULT_INTERVAL)
    if token is None:
        token = (os.getenv(_TOKEN_ENV) or "").strip() or None
    return CLIConfig(base_url=url.rstrip("/"), interval=interval, token=token)
