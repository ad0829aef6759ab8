"""Pydantic schemas for stored documents and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes to camelCase on the wire, accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SensorStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class Sensor(CamelModel):
    """A provisioned monitoring station."""

    id: str
    lat: float
    lng: float
    name: str
    status: SensorStatus = SensorStatus.active
    type: Optional[str] = None


class Reading(CamelModel):
    """A single particulate measurement as persisted."""

    id: str
    sensor_id: str
    pm25: float = Field(..., ge=0)
    pm10: float = Field(..., ge=0)
    timestamp: datetime


class SensorDataIn(CamelModel):
    """Payload posted by the sensor feed."""

    sensor_id: str = Field(..., min_length=1)
    pm25: float = Field(..., ge=0)
    pm10: float = Field(..., ge=0)
    lat: Optional[float] = None
    lng: Optional[float] = None
    type: Optional[str] = None
    name: Optional[str] = None
    timestamp: Optional[datetime] = None


class IngestAccepted(BaseModel):
    detail: str = "Data received"
    id: str


class HourlyAverage(CamelModel):
    """Mean concentrations for one clock hour of readings."""

    timestamp: datetime
    pm25: float
    pm10: float
    count: int = Field(..., ge=1)


class ReportStatus(str, Enum):
    pending = "Pending"
    in_progress = "In Progress"
    resolved = "Resolved"


class ReportIn(CamelModel):
    type: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: Optional[str] = None


class Report(CamelModel):
    """A user-filed incident report."""

    id: str
    type: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: Optional[str] = None
    status: ReportStatus = ReportStatus.pending
    timestamp: datetime


class UserRecord(CamelModel):
    """Stored user; never leaves the service layer."""

    id: str
    email: str
    name: Optional[str] = None
    password_hash: str
    created_at: datetime


class UserPublic(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SignupResponse(BaseModel):
    message: str = "User created successfully"
    id: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: UserPublic
