"""Threshold classification of incoming pm25 values."""

from __future__ import annotations

from typing import Optional

from models.records import AlertEvent, AlertLevel

WARNING_THRESHOLD = 100.0
CRITICAL_THRESHOLD = 200.0


def classify(pm25: float) -> Optional[AlertLevel]:
    """Band a single sample; both upper bounds are inclusive."""
    if pm25 <= WARNING_THRESHOLD:
        return None
    if pm25 <= CRITICAL_THRESHOLD:
        return AlertLevel.WARNING
    return AlertLevel.CRITICAL


class AlertEvaluator:
    """Stateless: each sample is judged on its own, with no debouncing."""

    def evaluate(
        self,
        sensor_id: str,
        pm25: float,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> Optional[AlertEvent]:
        level = classify(pm25)
        if level is None:
            return None
        return AlertEvent(
            sensor_id=sensor_id,
            level=level,
            pm25=pm25,
            lat=lat,
            lng=lng,
            message=f"High dust detected at sensor {sensor_id}!",
        )
