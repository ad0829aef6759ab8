"""FastAPI dependency providers and the bearer-token guards."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import InvalidTokenError
from services.aggregator import Aggregator
from services.broadcast import BroadcastChannel, build_default_channel
from services.credentials import CredentialStore, build_default_credentials
from services.ingestion import IngestionService, build_default_ingestion
from services.reports import ReportStore, build_default_reports
from services.telemetry import TelemetryStore, build_default_telemetry
from settings import get_settings

_bearer = HTTPBearer(auto_error=False)


def get_telemetry() -> TelemetryStore:
    return build_default_telemetry()


def get_ingestion() -> IngestionService:
    return build_default_ingestion()


def get_reports() -> ReportStore:
    return build_default_reports()


def get_credentials() -> CredentialStore:
    return build_default_credentials()


def get_channel() -> BroadcastChannel:
    return build_default_channel()


def get_aggregator() -> Aggregator:
    return Aggregator()


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    store: CredentialStore = Depends(get_credentials),
) -> str:
    """Resolve the bearer token to a user id or answer 401."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied")
    try:
        return store.verify(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


def authorize_write(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    store: CredentialStore = Depends(get_credentials),
) -> Optional[str]:
    """Guard for mutating endpoints, enforced only when configured."""
    if not get_settings().require_auth_for_writes:
        return None
    return require_user(credentials, store)
