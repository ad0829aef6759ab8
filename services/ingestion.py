"""Real-time path for one inbound sensor reading."""

from __future__ import annotations

import logging
from functools import lru_cache

from app.schemas import SensorDataIn
from services.alerts import AlertEvaluator
from services.broadcast import (
    NEW_ALERT,
    SENSOR_UPDATE,
    BroadcastChannel,
    build_default_channel,
)
from services.telemetry import TelemetryStore, build_default_telemetry

logger = logging.getLogger(__name__)


class IngestionService:
    """Persists (best-effort), evaluates and broadcasts each reading."""

    def __init__(
        self,
        telemetry: TelemetryStore,
        channel: BroadcastChannel,
        evaluator: AlertEvaluator,
    ) -> None:
        self.telemetry = telemetry
        self.channel = channel
        self.evaluator = evaluator

    def ingest(self, data: SensorDataIn) -> str:
        reading_id = self.telemetry.record(
            data.sensor_id, data.pm25, data.pm10, timestamp=data.timestamp
        )

        alert = self.evaluator.evaluate(data.sensor_id, data.pm25, data.lat, data.lng)
        if alert is not None:
            reached = self.channel.publish(NEW_ALERT, alert.to_payload())
            logger.info(
                "Alert raised",
                extra={
                    "sensor_id": data.sensor_id,
                    "alert_level": alert.level.value,
                    "subscriber_count": reached,
                },
            )

        self.channel.publish(
            SENSOR_UPDATE,
            {
                "sensorId": data.sensor_id,
                "pm25": data.pm25,
                "pm10": data.pm10,
                "lat": data.lat,
                "lng": data.lng,
                "type": data.type,
                "name": data.name,
            },
        )
        return reading_id


@lru_cache
def build_default_ingestion() -> IngestionService:
    return IngestionService(
        telemetry=build_default_telemetry(),
        channel=build_default_channel(),
        evaluator=AlertEvaluator(),
    )
