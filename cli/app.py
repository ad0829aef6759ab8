from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_history, render_report, render_reports, render_sensors
from cli.simulator import FleetSimulator


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Sensor fleet simulator and query tool for the AirWatch service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="AirWatch API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Seconds between simulation cycles (defaults to SIMULATOR_INTERVAL env or 2).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="Bearer token for write endpoints (defaults to API_TOKEN env).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, interval=interval, token=token)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("simulate")
def simulate_command(
    ctx: typer.Context,
    cycles: Optional[int] = typer.Option(
        None,
        "--cycles",
        "-n",
        min=1,
        help="Stop after this many cycles (runs until interrupted by default).",
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible traffic."),
) -> None:
    """Post random-walk readings for the default sensor fleet."""
    state = _get_state(ctx)
    simulator = FleetSimulator(rng=random.Random(seed))
    typer.echo(f"Starting sensor simulation against {state.config.base_url} ...")

    try:
        while cycles is None or simulator.cycle < cycles:
            for payload in simulator.step():
                if state.client.post_reading(payload) is not None:
                    typer.echo(f"[{payload['sensorId']}] Sent: PM2.5={payload['pm25']}")
            if cycles is not None and simulator.cycle >= cycles:
                break
            time.sleep(state.config.interval)
    except KeyboardInterrupt:
        typer.echo("Simulation stopped.")


@app.command("sensors")
def sensors_command(ctx: typer.Context) -> None:
    """List provisioned sensors."""
    state = _get_state(ctx)
    render_sensors(state.client.list_sensors())


@app.command("history")
def history_command(
    ctx: typer.Context,
    sensor_id: Optional[str] = typer.Option(None, "--sensor-id", "-s", help="Restrict to one sensor."),
    hours: Optional[int] = typer.Option(None, "--hours", min=1, max=168, help="Window size in hours."),
) -> None:
    """Show hourly pm25/pm10 averages."""
    state = _get_state(ctx)
    render_history(state.client.get_history(sensor_id=sensor_id, hours=hours))


@app.command("reports")
def reports_command(ctx: typer.Context) -> None:
    """List incident reports, most recent first."""
    state = _get_state(ctx)
    render_reports(state.client.list_reports())


@app.command("report")
def report_command(
    ctx: typer.Context,
    type: str = typer.Option(..., "--type", "-t", help="Kind of incident, e.g. dust or burning."),
    lat: Optional[float] = typer.Option(None, "--lat"),
    lng: Optional[float] = typer.Option(None, "--lng"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
) -> None:
    """File an incident report."""
    state = _get_state(ctx)
    created = state.client.file_report(
        {"type": type, "lat": lat, "lng": lng, "description": description}
    )
    typer.secho("Report filed.", fg=typer.colors.GREEN)
    render_report(created)
