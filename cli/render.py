from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.1f}"
    return "-" if value is None else str(value)


def render_sensors(sensors: List[Dict[str, Any]]) -> None:
    echo_heading("Sensors")
    if not sensors:
        typer.echo("No sensors provisioned.")
        return
    for sensor in sensors:
        typer.echo(
            f"  - {sensor.get('id')} {sensor.get('name')} "
            f"({_fmt(sensor.get('lat'))}, {_fmt(sensor.get('lng'))}) [{sensor.get('status')}]"
        )


def render_history(buckets: List[Dict[str, Any]]) -> None:
    echo_heading("Hourly Averages")
    if not buckets:
        typer.echo("No readings in window.")
        return
    for bucket in buckets:
        typer.echo(
            f"  {bucket.get('timestamp')}  pm25={_fmt(bucket.get('pm25'))}  "
            f"pm10={_fmt(bucket.get('pm10'))}  n={bucket.get('count')}"
        )


def render_report(report: Dict[str, Any]) -> None:
    echo_key_values(
        [
            ("id", report.get("id")),
            ("type", report.get("type")),
            ("status", report.get("status")),
            ("timestamp", report.get("timestamp")),
            ("location", f"{_fmt(report.get('lat'))}, {_fmt(report.get('lng'))}"),
            ("description", report.get("description")),
        ]
    )


def render_reports(reports: List[Dict[str, Any]]) -> None:
    echo_heading("Reports")
    if not reports:
        typer.echo("No reports filed.")
        return
    for report in reports:
        typer.echo()
        render_report(report)
