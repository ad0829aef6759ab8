from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_ENVIRONMENT_ENV = "AIRWATCH_ENV"
_STORE_PATH_ENV = "AIRWATCH_STORE_PATH"
_JWT_SECRET_ENV = "JWT_SECRET"
_TOKEN_TTL_ENV = "TOKEN_TTL_SECONDS"
_BCRYPT_ROUNDS_ENV = "BCRYPT_ROUNDS"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_REQUIRE_AUTH_ENV = "REQUIRE_AUTH_FOR_WRITES"
_CATALOG_PATH_ENV = "SENSOR_CATALOG_PATH"
_CORS_ORIGINS_ENV = "CORS_ORIGINS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_DEV_JWT_SECRET = "secretkey"
_DEV_STORE_PATH = "./tmp/airwatch"


@dataclass(frozen=True)
class Settings:
    environment: str
    store_path: Optional[str]
    jwt_secret: str
    token_ttl_seconds: int
    bcrypt_rounds: int
    ingest_workers: int
    require_auth_for_writes: bool
    sensor_catalog_path: Optional[str]
    cors_origins: Tuple[str, ...]
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_origins(default: str) -> Tuple[str, ...]:
    raw = _read_str_env(_CORS_ORIGINS_ENV, default)
    origins = tuple(part.strip() for part in raw.split(",") if part.strip())
    return origins or (default,)


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _require_explicit(name: str) -> None:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise RuntimeError(f"{name} must be set explicitly in production.")


@lru_cache
def get_settings() -> Settings:
    environment = _read_str_env(_ENVIRONMENT_ENV, "development").lower()
    if environment == "production":
        _require_explicit(_JWT_SECRET_ENV)
        _require_explicit(_STORE_PATH_ENV)

    # bcrypt only accepts cost factors between 4 and 31.
    rounds = min(max(_read_positive_int(_BCRYPT_ROUNDS_ENV, 10), 4), 31)

    return Settings(
        environment=environment,
        store_path=_read_optional_env(_STORE_PATH_ENV, _DEV_STORE_PATH),
        jwt_secret=_read_str_env(_JWT_SECRET_ENV, _DEV_JWT_SECRET),
        token_ttl_seconds=_read_positive_int(_TOKEN_TTL_ENV, 3600),
        bcrypt_rounds=rounds,
        ingest_workers=_read_positive_int(_WORKER_COUNT_ENV, 2),
        require_auth_for_writes=_read_bool(_REQUIRE_AUTH_ENV, False),
        sensor_catalog_path=_read_optional_env(_CATALOG_PATH_ENV, None),
        cors_origins=_read_origins("*"),
        log_level=_read_log_level("INFO"),
    )
