"""Hourly aggregation of particulate readings."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List

from app.schemas import HourlyAverage, Reading
from models.records import HourlyBucket
from services.clock import ensure_utc


def truncate_to_hour(value: datetime) -> datetime:
    """Start of the UTC clock hour containing ``value``."""
    return ensure_utc(value).replace(minute=0, second=0, microsecond=0)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def hourly(self, readings: Iterable[Reading]) -> List[HourlyAverage]:
        """Average pm25 and pm10 per clock hour, oldest hour first.

        Hours without readings are omitted rather than zero-filled.
        """
        buckets: Dict[datetime, HourlyBucket] = {}

        for reading in readings:
            hour = truncate_to_hour(reading.timestamp)
            bucket = buckets.get(hour)
            if bucket is None:
                bucket = buckets[hour] = HourlyBucket(hour=hour)
            bucket.add(reading.pm25, reading.pm10)

        return [
            HourlyAverage(
                timestamp=bucket.hour,
                pm25=bucket.pm25_mean,
                pm10=bucket.pm10_mean,
                count=bucket.count,
            )
            for bucket in sorted(buckets.values(), key=lambda item: item.hour)
        ]
