"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AlertLevel(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """A threshold breach raised for one reading. Never persisted."""

    sensor_id: str
    level: AlertLevel
    pm25: float
    lat: Optional[float]
    lng: Optional[float]
    message: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sensorId": self.sensor_id,
            "level": self.level.value,
            "pm25": self.pm25,
            "lat": self.lat,
            "lng": self.lng,
            "message": self.message,
        }


@dataclass(slots=True)
class HourlyBucket:
    """Running totals for the readings that fall in one clock hour."""

    hour: datetime
    pm25_total: float = 0.0
    pm10_total: float = 0.0
    count: int = 0

    def add(self, pm25: float, pm10: float) -> None:
        self.pm25_total += pm25
        self.pm10_total += pm10
        self.count += 1

    @property
    def pm25_mean(self) -> float:
        return self.pm25_total / self.count

    @property
    def pm10_mean(self) -> float:
        return self.pm10_total / self.count


@dataclass(frozen=True, slots=True)
class BroadcastEvent:
    """One named event queued for delivery to a subscriber."""

    name: str
    payload: Dict[str, Any]

    def as_message(self) -> Dict[str, Any]:
        return {"event": self.name, "data": self.payload}
