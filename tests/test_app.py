from __future__ import annotations

import asyncio
import json
from datetime import timedelta
from typing import Any, Dict, Iterator, List, Tuple

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from errors import PersistenceUnavailableError
from services.aggregator import truncate_to_hour
from services.broadcast import BroadcastChannel
from services.clock import utc_now
from services.credentials import build_default_credentials
from services.reports import build_default_reports
from services.telemetry import build_default_telemetry
from settings import get_settings


class RecordingChannel(BroadcastChannel):
    def __init__(self) -> None:
        super().__init__()
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, event: str, payload) -> int:
        self.published.append((event, dict(payload)))
        return super().publish(event, payload)


@pytest.fixture
def api_client(airwatch_env) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def recording_channel(monkeypatch) -> RecordingChannel:
    channel = RecordingChannel()
    monkeypatch.setattr("services.ingestion.build_default_channel", lambda: channel)
    monkeypatch.setattr("app.dependencies.build_default_channel", lambda: channel)
    return channel


def _reading(sensor_id: str = "S-001", pm25: float = 40, **extra: Any) -> Dict[str, Any]:
    payload = {
        "sensorId": sensor_id,
        "pm25": pm25,
        "pm10": pm25 * 1.8,
        "lat": 12.97,
        "lng": 77.59,
        "type": "normal",
        "name": "MG Road Junction",
    }
    payload.update(extra)
    return payload


def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _signup(client: TestClient, email: str = "ana@example.com", password: str = "pw") -> None:
    response = client.post(
        "/api/auth/signup", json={"name": "Ana", "email": email, "password": password}
    )
    assert response.status_code == 201


def _login(client: TestClient, email: str = "ana@example.com", password: str = "pw") -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["token"]


def test_health_and_root(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_ingest_accepts_unknown_sensor(api_client: TestClient) -> None:
    response = api_client.post("/api/sensors/data", json=_reading(sensor_id="never-provisioned"))

    assert response.status_code == 201
    body = response.json()
    assert body["detail"] == "Data received"
    assert body["id"]


def test_ingest_rejects_negative_concentration(api_client: TestClient) -> None:
    response = api_client.post("/api/sensors/data", json=_reading(pm25=-1))

    assert response.status_code == 422


def test_critical_reading_publishes_alert_before_response(
    recording_channel: RecordingChannel, api_client: TestClient
) -> None:
    response = api_client.post("/api/sensors/data", json=_reading(sensor_id="S-005", pm25=250))

    assert response.status_code == 201
    events = [name for name, _ in recording_channel.published]
    assert events == ["new-alert", "sensor-update"]
    alert = recording_channel.published[0][1]
    assert alert["level"] == "CRITICAL"
    assert alert["sensorId"] == "S-005"
    assert alert["message"] == "High dust detected at sensor S-005!"


def test_normal_reading_only_updates_live_feed(
    recording_channel: RecordingChannel, api_client: TestClient
) -> None:
    api_client.post("/api/sensors/data", json=_reading(pm25=100))

    assert recording_channel.published == [
        (
            "sensor-update",
            {
                "sensorId": "S-001",
                "pm25": 100,
                "pm10": 180,
                "lat": 12.97,
                "lng": 77.59,
                "type": "normal",
                "name": "MG Road Junction",
            },
        )
    ]


def test_ingest_succeeds_when_persistence_fails(
    recording_channel: RecordingChannel, api_client: TestClient, monkeypatch
) -> None:
    telemetry = build_default_telemetry()

    def failing_insert(_item) -> None:
        raise PersistenceUnavailableError("store offline")

    monkeypatch.setattr(telemetry.readings, "insert", failing_insert)

    response = api_client.post("/api/sensors/data", json=_reading(pm25=150))
    telemetry.flush(timeout=5)

    assert response.status_code == 201
    assert [name for name, _ in recording_channel.published] == ["new-alert", "sensor-update"]
    assert api_client.get("/api/sensors/history").json() == []


def test_websocket_listener_receives_alert_then_update(api_client: TestClient) -> None:
    with api_client.websocket_connect("/ws") as websocket:
        response = api_client.post("/api/sensors/data", json=_reading(sensor_id="S-008", pm25=150))
        assert response.status_code == 201

        alert = websocket.receive_json()
        update = websocket.receive_json()

    assert alert["event"] == "new-alert"
    assert alert["data"]["level"] == "WARNING"
    assert update["event"] == "sensor-update"
    assert update["data"]["sensorId"] == "S-008"


def test_websocket_listener_receives_new_reports(api_client: TestClient) -> None:
    with api_client.websocket_connect("/ws") as websocket:
        created = api_client.post(
            "/api/reports", json={"type": "burning", "description": "Smoke"}
        ).json()
        message = websocket.receive_json()

    assert message == {"event": "new-report", "data": created}


def test_history_buckets_hourly_and_sorts(api_client: TestClient) -> None:
    current_hour = truncate_to_hour(utc_now())
    earlier = current_hour - timedelta(hours=3)
    for minutes, pm25 in ((5, 120), (40, 80)):
        stamp = (earlier + timedelta(minutes=minutes)).isoformat()
        api_client.post("/api/sensors/data", json=_reading(pm25=pm25, timestamp=stamp))
    later = (current_hour - timedelta(hours=1) + timedelta(minutes=1)).isoformat()
    api_client.post("/api/sensors/data", json=_reading(pm25=30, timestamp=later))
    stale = (current_hour - timedelta(hours=30)).isoformat()
    api_client.post("/api/sensors/data", json=_reading(pm25=500, timestamp=stale))
    api_client.post(
        "/api/sensors/data",
        json=_reading(sensor_id="S-002", pm25=10, timestamp=later),
    )
    build_default_telemetry().flush(timeout=5)

    response = api_client.get("/api/sensors/history", params={"sensorId": "S-001"})

    assert response.status_code == 200
    buckets = response.json()
    assert len(buckets) == 2
    assert buckets[0]["pm25"] == pytest.approx(100.0)
    assert buckets[0]["count"] == 2
    assert buckets[1]["pm25"] == pytest.approx(30.0)
    assert buckets[0]["timestamp"] < buckets[1]["timestamp"]


def test_history_without_sensor_filter_covers_all_sensors(api_client: TestClient) -> None:
    stamp = (truncate_to_hour(utc_now()) - timedelta(hours=2)).isoformat()
    api_client.post("/api/sensors/data", json=_reading(sensor_id="S-001", pm25=20, timestamp=stamp))
    api_client.post("/api/sensors/data", json=_reading(sensor_id="S-002", pm25=40, timestamp=stamp))
    build_default_telemetry().flush(timeout=5)

    buckets = api_client.get("/api/sensors/history").json()

    assert [b["pm25"] for b in buckets] == [pytest.approx(30.0)]


def test_history_empty_window(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/history", params={"sensorId": "S-404"})

    assert response.status_code == 200
    assert response.json() == []


def test_sensors_listing_includes_catalog(airwatch_env, tmp_path, monkeypatch) -> None:
    catalog = tmp_path / "catalog.json"
    catalog.write_text(
        json.dumps([{"id": "S-001", "lat": 12.9716, "lng": 77.5946, "name": "MG Road Junction"}])
    )
    monkeypatch.setenv("SENSOR_CATALOG_PATH", str(catalog))
    get_settings.cache_clear()

    with TestClient(create_app()) as client:
        sensors = client.get("/api/sensors").json()

    assert sensors == [
        {
            "id": "S-001",
            "lat": 12.9716,
            "lng": 77.5946,
            "name": "MG Road Junction",
            "status": "active",
            "type": None,
        }
    ]


def test_reports_round_trip_newest_first(api_client: TestClient) -> None:
    first = api_client.post("/api/reports", json={"type": "dust", "lat": 1.0, "lng": 2.0, "description": "R1"})
    second = api_client.post("/api/reports", json={"type": "dust", "description": "R2"})

    assert first.status_code == 200
    assert first.json()["status"] == "Pending"
    listed = api_client.get("/api/reports").json()
    assert [r["description"] for r in listed] == ["R2", "R1"]
    assert listed[0]["id"] == second.json()["id"]


def test_report_listing_failure_is_server_error(api_client: TestClient, monkeypatch) -> None:
    reports = build_default_reports()

    def failing_scan():
        raise PersistenceUnavailableError("store offline")

    monkeypatch.setattr(reports.reports, "scan", failing_scan)

    response = api_client.get("/api/reports")

    assert response.status_code == 500
    assert response.json() == {"detail": "Persistence layer unavailable."}


def test_signup_login_and_me(api_client: TestClient) -> None:
    _signup(api_client)
    response = api_client.post("/api/auth/login", json={"email": "ana@example.com", "password": "pw"})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["name"] == "Ana"
    assert "password" not in json.dumps(body)

    me = api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_signup_duplicate_email_is_rejected(api_client: TestClient) -> None:
    _signup(api_client)

    response = api_client.post(
        "/api/auth/signup", json={"name": "Other", "email": "ana@example.com", "password": "x"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_login_failures_look_identical(api_client: TestClient) -> None:
    _signup(api_client)

    wrong_password = api_client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
    unknown_email = api_client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "pw"})

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.json() == unknown_email.json()


def test_me_requires_valid_token(api_client: TestClient) -> None:
    assert api_client.get("/api/auth/me").status_code == 401
    invalid = api_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid token"


def test_writes_require_token_when_enabled(airwatch_env, monkeypatch) -> None:
    monkeypatch.setenv("REQUIRE_AUTH_FOR_WRITES", "true")
    get_settings.cache_clear()

    with TestClient(create_app()) as client:
        assert client.post("/api/sensors/data", json=_reading()).status_code == 401
        assert client.post("/api/reports", json={"type": "dust"}).status_code == 401

        _signup(client)
        headers = {"Authorization": f"Bearer {_login(client)}"}
        assert client.post("/api/sensors/data", json=_reading(), headers=headers).status_code == 201
        assert client.post("/api/reports", json={"type": "dust"}, headers=headers).status_code == 200
        # Reads stay open.
        assert client.get("/api/reports").status_code == 200


def test_password_hashing_runs_off_the_event_loop(api_client: TestClient, monkeypatch) -> None:
    credentials = build_default_credentials()
    register, authenticate = credentials.register, credentials.authenticate
    on_loop: List[bool] = []

    def tracked_register(*args, **kwargs):
        on_loop.append(_on_event_loop())
        return register(*args, **kwargs)

    def tracked_authenticate(*args, **kwargs):
        on_loop.append(_on_event_loop())
        return authenticate(*args, **kwargs)

    monkeypatch.setattr(credentials, "register", tracked_register)
    monkeypatch.setattr(credentials, "authenticate", tracked_authenticate)

    _signup(api_client)
    _login(api_client)

    assert on_loop == [False, False]


def test_history_scan_runs_off_the_event_loop(api_client: TestClient, monkeypatch) -> None:
    telemetry = build_default_telemetry()
    query = telemetry.query
    on_loop: List[bool] = []

    def tracked_query(*args, **kwargs):
        on_loop.append(_on_event_loop())
        return query(*args, **kwargs)

    monkeypatch.setattr(telemetry, "query", tracked_query)

    assert api_client.get("/api/sensors/history").status_code == 200
    assert on_loop == [False]


def test_websocket_ignores_binary_frames(api_client: TestClient) -> None:
    with api_client.websocket_connect("/ws") as websocket:
        websocket.send_bytes(b"\x00\x01")
        created = api_client.post("/api/reports", json={"type": "dust"}).json()
        message = websocket.receive_json()

    assert message == {"event": "new-report", "data": created}
