from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List

import pytest

from app.schemas import Reading, Sensor, SensorStatus
from datastore.document_store import DocumentCollection
from errors import ConflictError, PersistenceUnavailableError
from services.telemetry import MAX_QUERY_LIMIT, TelemetryStore

_T0 = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)

_COPIES: List[str] = []


class CountingReading(Reading):
    def model_copy(self, *, update=None, deep: bool = False):
        _COPIES.append(self.id)
        return super().model_copy(update=update, deep=deep)


@pytest.fixture()
def telemetry() -> Iterator[TelemetryStore]:
    store = TelemetryStore(
        readings=DocumentCollection(name="readings", model=Reading),
        sensors=DocumentCollection(name="sensors", model=Sensor),
        workers=1,
    )
    yield store
    store.shutdown()


def _seed(telemetry: TelemetryStore, count: int, sensor_id: str = "S-001") -> None:
    for index in range(count):
        telemetry.readings.insert(
            Reading(
                id=f"{sensor_id}-{index}",
                sensor_id=sensor_id,
                pm25=float(index),
                pm10=float(index) * 1.8,
                timestamp=_T0 + timedelta(seconds=index),
            )
        )


def test_record_persists_in_background(telemetry: TelemetryStore) -> None:
    reading_id = telemetry.record("S-001", 42.0, 75.0)
    telemetry.flush(timeout=5)

    stored = telemetry.readings.get(reading_id)
    assert stored is not None
    assert stored.sensor_id == "S-001"
    assert stored.timestamp.tzinfo is not None


def test_record_keeps_supplied_timestamp(telemetry: TelemetryStore) -> None:
    supplied = datetime(2024, 3, 1, 5, 30)
    reading_id = telemetry.record("S-001", 1.0, 2.0, timestamp=supplied)
    telemetry.flush(timeout=5)

    assert telemetry.readings.get(reading_id).timestamp == supplied.replace(tzinfo=timezone.utc)  # type: ignore[union-attr]


def test_record_assigns_increasing_timestamps(telemetry: TelemetryStore) -> None:
    ids = [telemetry.record("S-001", 1.0, 2.0) for _ in range(20)]
    telemetry.flush(timeout=5)

    stamps = [telemetry.readings.get(reading_id).timestamp for reading_id in ids]  # type: ignore[union-attr]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_record_swallows_persistence_failures(
    telemetry: TelemetryStore, monkeypatch, caplog
) -> None:
    def failing_insert(_item: Reading) -> Reading:
        raise PersistenceUnavailableError("store offline")

    monkeypatch.setattr(telemetry.readings, "insert", failing_insert)

    with caplog.at_level(logging.WARNING, logger="services.telemetry"):
        reading_id = telemetry.record("S-002", 250.0, 450.0)
        telemetry.flush(timeout=5)

    assert reading_id
    assert telemetry.readings.scan() == []
    assert any("Reading persistence failed" in message for message in caplog.messages)


def test_record_after_shutdown_still_returns_id(telemetry: TelemetryStore) -> None:
    telemetry.shutdown()

    assert telemetry.record("S-001", 1.0, 2.0)


def test_query_caps_at_earliest_thousand_ascending(telemetry: TelemetryStore) -> None:
    _seed(telemetry, 1500)

    results = telemetry.query(since=_T0, limit=MAX_QUERY_LIMIT)

    assert len(results) == 1000
    assert results[0].id == "S-001-0"
    assert results[-1].id == "S-001-999"
    assert [r.timestamp for r in results] == sorted(r.timestamp for r in results)


def test_query_copies_only_the_selected_readings(telemetry: TelemetryStore) -> None:
    for index in reversed(range(300)):
        telemetry.readings.insert(
            CountingReading(
                id=f"S-001-{index}",
                sensor_id="S-001",
                pm25=1.0,
                pm10=1.8,
                timestamp=_T0 + timedelta(seconds=index),
            )
        )
    _COPIES.clear()

    results = telemetry.query(since=_T0, limit=25)

    assert [r.id for r in results] == [f"S-001-{i}" for i in range(25)]
    assert len(_COPIES) == 25


def test_query_never_exceeds_hard_cap(telemetry: TelemetryStore) -> None:
    _seed(telemetry, 1200)

    assert len(telemetry.query(since=_T0, limit=5000)) == MAX_QUERY_LIMIT
    assert len(telemetry.query(since=_T0, limit=10)) == 10


def test_query_filters_by_window_and_sensor(telemetry: TelemetryStore) -> None:
    _seed(telemetry, 10, sensor_id="S-001")
    _seed(telemetry, 10, sensor_id="S-002")

    since = _T0 + timedelta(seconds=5)
    results = telemetry.query(since=since, sensor_id="S-002")

    assert [r.id for r in results] == [f"S-002-{i}" for i in range(5, 10)]


def test_list_sensors_ignores_status(telemetry: TelemetryStore) -> None:
    telemetry.provision_sensor(Sensor(id="S-001", lat=1.0, lng=2.0, name="A"))
    telemetry.provision_sensor(
        Sensor(id="S-002", lat=1.0, lng=2.0, name="B", status=SensorStatus.inactive)
    )

    assert sorted(s.id for s in telemetry.list_sensors()) == ["S-001", "S-002"]


def test_provision_sensor_rejects_duplicate_id(telemetry: TelemetryStore) -> None:
    telemetry.provision_sensor(Sensor(id="S-001", lat=1.0, lng=2.0, name="A"))

    with pytest.raises(ConflictError):
        telemetry.provision_sensor(Sensor(id="S-001", lat=3.0, lng=4.0, name="A2"))


def test_provision_catalog_skips_known_and_invalid(telemetry: TelemetryStore, tmp_path: Path) -> None:
    telemetry.provision_sensor(Sensor(id="S-001", lat=1.0, lng=2.0, name="Existing"))
    catalog = tmp_path / "sensors.json"
    catalog.write_text(
        json.dumps(
            [
                {"id": "S-001", "lat": 0, "lng": 0, "name": "Duplicate"},
                {"id": "S-002", "lat": 12.97, "lng": 77.6, "name": "Cubbon Park Edge"},
                {"id": "S-005", "lat": 12.93, "lng": 77.62, "name": "Site", "type": "construction"},
                {"id": "broken"},
            ]
        )
    )

    added = telemetry.provision_catalog(catalog)

    assert added == 2
    assert sorted(s.id for s in telemetry.list_sensors()) == ["S-001", "S-002", "S-005"]


def test_provision_catalog_tolerates_missing_file(telemetry: TelemetryStore, tmp_path: Path) -> None:
    assert telemetry.provision_catalog(tmp_path / "absent.json") == 0
