"""Synthetic sensor fleet that drives the ingestion endpoint."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

ALERT_SENSOR_IDS = frozenset({"S-005", "S-008", "S-009"})
# Alert sensors spike every 23 cycles; every other spike is critical.
ALERT_PERIOD = 23
PM25_FLOOR = 10
PM25_CEILING = 800
PM10_RATIO = 1.8

_INITIAL_PM25: Dict[str, Tuple[int, int]] = {
    "normal": (20, 50),
    "construction": (150, 250),
    "industrial": (80, 120),
}
_STEP: Dict[str, Tuple[int, int]] = {
    "normal": (-5, 5),
    "construction": (-10, 20),
    "industrial": (-5, 10),
}


@dataclass(frozen=True)
class SensorProfile:
    id: str
    lat: float
    lng: float
    name: str
    type: str = "normal"


@dataclass
class SensorState:
    """Current simulated levels for one sensor."""

    pm25: int
    pm10: int


DEFAULT_FLEET: Tuple[SensorProfile, ...] = (
    SensorProfile("S-001", 12.9716, 77.5946, "MG Road Junction"),
    SensorProfile("S-002", 12.9780, 77.6000, "Cubbon Park Edge"),
    SensorProfile("S-003", 12.9600, 77.5800, "Lalbagh Gate"),
    SensorProfile("S-004", 12.9850, 77.6100, "Indiranagar 100ft"),
    SensorProfile("S-005", 12.9350, 77.6200, "Koramangala Construction Site", "construction"),
    SensorProfile("S-006", 12.9250, 77.6100, "Silk Board Metro Works", "construction"),
    SensorProfile("S-007", 13.0350, 77.5970, "Hebbal Flyover Repair", "construction"),
    SensorProfile("S-008", 12.9900, 77.4900, "Peenya Industrial Estate", "industrial"),
    SensorProfile("S-009", 12.9698, 77.7500, "Whitefield IT Park", "industrial"),
    SensorProfile("S-010", 12.8399, 77.6770, "Electronic City Phase 1", "industrial"),
    SensorProfile("S-011", 12.9250, 77.5938, "Jayanagar 4th Block"),
    SensorProfile("S-012", 13.0000, 77.5700, "Malleshwaram 18th Cross"),
    SensorProfile("S-013", 12.8950, 77.6000, "Bannerghatta Road Metro", "construction"),
    SensorProfile("S-014", 13.0100, 77.6500, "KR Puram Bridge", "construction"),
    SensorProfile("S-015", 13.0290, 77.5400, "Yeshwanthpur Market", "industrial"),
    SensorProfile("S-016", 12.9116, 77.6389, "HSR Layout Sector 2"),
    SensorProfile("S-017", 12.9165, 77.6101, "BTM Layout Lake Road"),
)


def _pm10_for(pm25: int) -> int:
    return math.floor(pm25 * PM10_RATIO)


class FleetSimulator:
    """Random-walk generator owning the per-sensor state of its fleet."""

    def __init__(
        self,
        fleet: Iterable[SensorProfile] = DEFAULT_FLEET,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.fleet: List[SensorProfile] = list(fleet)
        self.rng = rng or random.Random()
        self.cycle = 0
        self.states: Dict[str, SensorState] = {}
        for sensor in self.fleet:
            low, high = _INITIAL_PM25.get(sensor.type, _INITIAL_PM25["normal"])
            pm25 = self.rng.randint(low, high)
            self.states[sensor.id] = SensorState(pm25=pm25, pm10=_pm10_for(pm25))

    def step(self) -> List[Dict[str, Any]]:
        """Advance every sensor once and return the payloads to post."""
        self.cycle += 1
        payloads = []
        for sensor in self.fleet:
            state = self.states[sensor.id]
            low, high = _STEP.get(sensor.type, _STEP["normal"])
            pm25 = state.pm25 + self.rng.randint(low, high)

            if self.cycle % ALERT_PERIOD == 0 and sensor.id in ALERT_SENSOR_IDS:
                if self.cycle % (2 * ALERT_PERIOD) == 0:
                    pm25 = self.rng.randint(200, 300)
                else:
                    pm25 = self.rng.randint(120, 180)

            state.pm25 = min(max(pm25, PM25_FLOOR), PM25_CEILING)
            state.pm10 = _pm10_for(state.pm25)
            payloads.append(
                {
                    "sensorId": sensor.id,
                    "pm25": state.pm25,
                    "pm10": state.pm10,
                    "lat": sensor.lat,
                    "lng": sensor.lng,
                    "type": sensor.type,
                    "name": sensor.name,
                }
            )
        return payloads
