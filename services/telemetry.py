"""Append-only store of sensor readings and the sensor catalog."""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import ValidationError

from app.schemas import Reading, Sensor
from datastore.document_store import DocumentCollection, build_default_store
from errors import AirWatchError, ConflictError
from services.clock import MonotonicClock, ensure_utc
from settings import get_settings

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 1000


class TelemetryStore:
    """Records readings with detached writes and answers windowed queries."""

    def __init__(
        self,
        readings: DocumentCollection[Reading],
        sensors: DocumentCollection[Sensor],
        workers: int = 2,
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        self.readings = readings
        self.sensors = sensors
        self.clock = clock or MonotonicClock()
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="telemetry")
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = Lock()

    def record(
        self,
        sensor_id: str,
        pm25: float,
        pm10: float,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Schedule a reading for persistence and return its id immediately.

        Persistence failures are logged and dropped; they never reach the caller.
        """
        reading = Reading(
            id=uuid4().hex,
            sensor_id=sensor_id,
            pm25=pm25,
            pm10=pm10,
            timestamp=ensure_utc(timestamp) if timestamp is not None else self.clock.now(),
        )
        try:
            future = self.executor.submit(self._write, reading)
        except RuntimeError as exc:
            logger.warning(
                "Reading dropped, writer is shut down",
                extra={"sensor_id": sensor_id, "reading_id": reading.id, "reason": str(exc)},
            )
            return reading.id

        with self._futures_lock:
            self._futures[reading.id] = future
        future.add_done_callback(lambda _f, rid=reading.id: self._clear_future(rid))
        return reading.id

    def query(
        self,
        since: datetime,
        sensor_id: Optional[str] = None,
        limit: int = MAX_QUERY_LIMIT,
    ) -> List[Reading]:
        """Readings at or after ``since``, oldest first, capped at 1000."""
        cutoff = ensure_utc(since)
        cap = max(0, min(limit, MAX_QUERY_LIMIT))
        return self.readings.select(
            lambda reading: reading.timestamp >= cutoff
            and (sensor_id is None or reading.sensor_id == sensor_id),
            key=lambda reading: reading.timestamp,
            limit=cap,
        )

    def list_sensors(self) -> List[Sensor]:
        return self.sensors.scan()

    def provision_sensor(self, sensor: Sensor) -> Sensor:
        return self.sensors.insert(sensor)

    def provision_catalog(self, path: Path) -> int:
        """Provision sensors from a JSON array, skipping ids already known."""
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Sensor catalog unreadable", extra={"path": str(path), "reason": str(exc)})
            return 0
        if not isinstance(raw, list):
            logger.warning("Sensor catalog is not a list", extra={"path": str(path)})
            return 0

        added = 0
        for entry in raw:
            try:
                sensor = Sensor.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping invalid catalog entry", extra={"reason": str(exc)})
                continue
            try:
                self.provision_sensor(sensor)
            except ConflictError:
                continue
            added += 1
        logger.info("Provisioned %d sensors from catalog", added, extra={"path": str(path)})
        return added

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every write scheduled so far has finished."""
        with self._futures_lock:
            pending = list(self._futures.values())
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        """Drain pending writes and stop the worker pool."""
        self.executor.shutdown(wait=True)

    def _write(self, reading: Reading) -> None:
        try:
            self.readings.insert(reading)
        except AirWatchError as exc:
            logger.warning(
                "Reading persistence failed",
                extra={"sensor_id": reading.sensor_id, "reading_id": reading.id, "reason": str(exc)},
            )

    def _clear_future(self, reading_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(reading_id, None)


@lru_cache
def build_default_telemetry(workers: Optional[int] = None) -> TelemetryStore:
    """Factory that wires the telemetry store to the default document store."""
    store = build_default_store()
    return TelemetryStore(
        readings=store.collection("readings", Reading),
        sensors=store.collection("sensors", Sensor),
        workers=workers or get_settings().ingest_workers,
    )
