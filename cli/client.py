from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the AirWatch service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"Authorization": f"Bearer {config.token}"} if config.token else None
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0, headers=headers)

    def close(self) -> None:
        self._client.close()

    def post_reading(self, payload: Dict[str, Any]) -> Optional[str]:
        """Post one reading; failures are reported but never abort the caller."""
        try:
            response = self._client.post("/api/sensors/data", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            typer.secho(
                f"Error sending data for {payload.get('sensorId')}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            return None
        return str(response.json().get("id", ""))

    def list_sensors(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/sensors").json()

    def get_history(self, sensor_id: Optional[str] = None, hours: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if sensor_id:
            params["sensorId"] = sensor_id
        if hours is not None:
            params["hours"] = hours
        return self._request("GET", "/api/sensors/history", params=params).json()

    def list_reports(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/reports").json()

    def file_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/reports", json=payload).json()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
