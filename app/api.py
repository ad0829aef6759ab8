"""HTTP route definitions for sensors, readings and reports."""

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import (
    authorize_write,
    get_aggregator,
    get_channel,
    get_ingestion,
    get_reports,
    get_telemetry,
)
from app.schemas import (
    HourlyAverage,
    IngestAccepted,
    Report,
    ReportIn,
    Sensor,
    SensorDataIn,
)
from services.aggregator import Aggregator
from services.broadcast import NEW_REPORT, BroadcastChannel
from services.clock import utc_now
from services.ingestion import IngestionService
from services.reports import ReportStore
from services.telemetry import MAX_QUERY_LIMIT, TelemetryStore

router = APIRouter()

DEFAULT_HISTORY_HOURS = 24


@router.get(
    "/api/sensors",
    response_model=List[Sensor],
    summary="List every provisioned sensor.",
)
async def list_sensors(
    telemetry: TelemetryStore = Depends(get_telemetry),
) -> List[Sensor]:
    return telemetry.list_sensors()


@router.post(
    "/api/sensors/data",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestAccepted,
    summary="Ingest one reading; storage is best-effort.",
)
async def ingest_reading(
    payload: SensorDataIn,
    ingestion: IngestionService = Depends(get_ingestion),
    _user: Optional[str] = Depends(authorize_write),
) -> IngestAccepted:
    reading_id = ingestion.ingest(payload)
    return IngestAccepted(id=reading_id)


# Sync route: the window scan runs in the threadpool, off the event loop.
@router.get(
    "/api/sensors/history",
    response_model=List[HourlyAverage],
    summary="Hourly pm25/pm10 averages over a trailing window.",
)
def sensor_history(
    sensor_id: Optional[str] = Query(None, alias="sensorId"),
    hours: int = Query(DEFAULT_HISTORY_HOURS, ge=1, le=168),
    telemetry: TelemetryStore = Depends(get_telemetry),
    aggregator: Aggregator = Depends(get_aggregator),
) -> List[HourlyAverage]:
    since = utc_now() - timedelta(hours=hours)
    readings = telemetry.query(since=since, sensor_id=sensor_id, limit=MAX_QUERY_LIMIT)
    return aggregator.hourly(readings)


@router.get(
    "/api/reports",
    response_model=List[Report],
    summary="List reports, most recent first.",
)
async def list_reports(
    reports: ReportStore = Depends(get_reports),
) -> List[Report]:
    return reports.list_all()


@router.post(
    "/api/reports",
    response_model=Report,
    summary="File an incident report and announce it to live listeners.",
)
async def create_report(
    payload: ReportIn,
    reports: ReportStore = Depends(get_reports),
    channel: BroadcastChannel = Depends(get_channel),
    _user: Optional[str] = Depends(authorize_write),
) -> Report:
    report = reports.create(
        type=payload.type,
        lat=payload.lat,
        lng=payload.lng,
        description=payload.description,
    )
    channel.publish(NEW_REPORT, report.model_dump(mode="json", by_alias=True))
    return report


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
