from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router
from app.auth import router as auth_router
from app.live import router as live_router
from datastore.document_store import build_default_store
from errors import PersistenceUnavailableError
from logging_config import configure_logging
from services.broadcast import build_default_channel
from services.credentials import build_default_credentials
from services.ingestion import build_default_ingestion
from services.reports import build_default_reports
from services.telemetry import build_default_telemetry
from settings import get_settings

logger = logging.getLogger(__name__)

_SERVICE_FACTORIES = (
    build_default_ingestion,
    build_default_telemetry,
    build_default_reports,
    build_default_credentials,
    build_default_channel,
    build_default_store,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    build_default_store().connect()
    telemetry = build_default_telemetry()
    if settings.sensor_catalog_path:
        telemetry.provision_catalog(Path(settings.sensor_catalog_path))
    try:
        yield
    finally:
        telemetry.shutdown()
        for factory in _SERVICE_FACTORIES:
            factory.cache_clear()


async def _persistence_unavailable(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Request failed, persistence unavailable",
        extra={"path": request.url.path, "reason": str(exc)},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Persistence layer unavailable."},
    )


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(
        title="AirWatch",
        description="Air-quality telemetry ingestion, alerting and incident reports.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PersistenceUnavailableError, _persistence_unavailable)
    app.include_router(router)
    app.include_router(auth_router)
    app.include_router(live_router)
    return app

app = create_app()
