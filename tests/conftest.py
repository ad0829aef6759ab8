"""Shared fixtures: an isolated store directory and fresh service factories."""

from __future__ import annotations

from typing import Iterator

import pytest

from datastore.document_store import build_default_store
from services.broadcast import build_default_channel
from services.credentials import build_default_credentials
from services.ingestion import build_default_ingestion
from services.reports import build_default_reports
from services.telemetry import build_default_telemetry
from settings import get_settings

_FACTORIES = (
    build_default_ingestion,
    build_default_reports,
    build_default_credentials,
    build_default_channel,
    build_default_store,
    get_settings,
)


def _reset_factories() -> None:
    if build_default_telemetry.cache_info().currsize:
        build_default_telemetry().shutdown()
    build_default_telemetry.cache_clear()
    for factory in _FACTORIES:
        factory.cache_clear()


@pytest.fixture
def airwatch_env(tmp_path, monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("AIRWATCH_ENV", "test")
    monkeypatch.setenv("AIRWATCH_STORE_PATH", str(tmp_path / "store"))
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.delenv("REQUIRE_AUTH_FOR_WRITES", raising=False)
    monkeypatch.delenv("SENSOR_CATALOG_PATH", raising=False)
    _reset_factories()
    yield
    _reset_factories()
